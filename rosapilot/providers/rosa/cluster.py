import asyncio
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import replace
from functools import partial
from pathlib import Path

from rosapilot.clients.kubernetes_client import KubernetesClient
from rosapilot.clients.ocm_client import OcmClient, OcmEnvironment
from rosapilot.config import DEFAULT_POLL_INTERVAL
from rosapilot.core.health import ClusterHealthChecker
from rosapilot.core.poller import wait_for
from rosapilot.exceptions import (
    AccountRolesError,
    ClusterError,
    ClusterNotFoundError,
    InconsistentStateError,
    OidcConfigError,
    OperatorRolesError,
    PhaseError,
    PollTimeoutError,
    RosaPilotError,
    VpcError,
)
from rosapilot.providers.rosa.account_roles import DEFAULT_ACCOUNT_ROLES_PREFIX, AccountRoles, AccountRolesResolver
from rosapilot.providers.rosa.logs import ClusterLogs, ClusterLogType
from rosapilot.providers.rosa.oidc_config import OidcConfigResolver
from rosapilot.providers.rosa.operator_roles import OperatorRoles
from rosapilot.providers.rosa.options import (
    ClusterArguments,
    CreateClusterOptions,
    DeleteClusterOptions,
    build_create_cluster_args,
    cluster_working_dir,
    validate_create_options,
    validate_preflight,
)
from rosapilot.providers.rosa.regions import RegionSelector
from rosapilot.providers.rosa.resources import CreatedResourcesTracker, ResourceKind
from rosapilot.providers.rosa.rosa_cli import RosaCli
from rosapilot.providers.rosa.versions import NIGHTLY_CHANNEL_GROUP, VersionSelector, major_minor
from rosapilot.providers.rosa.vpc import NetworkStackProvisioner
from rosapilot.schemas import ClusterRecord
from rosapilot.utils import setup_logger

READY_STATE = 'ready'
FAILED_STATES = frozenset({'error', 'uninstalling'})

HealthCheckerFactory = Callable[[Path], ClusterHealthChecker]


@contextmanager
def phase(error_type: type[PhaseError], action: str) -> Iterator[None]:
    """Tag failures of one dependency step with the resource they concern."""
    try:
        yield
    except error_type:
        raise
    except RosaPilotError as e:
        raise error_type(action, e) from e


class ClusterOrchestrator:
    """
    Create and delete sagas for ROSA clusters.

    Creation resolves account roles and the oidc config (hosted control plane or sts), provisions
    a network stack (hosted control plane or private link), creates the cluster and waits for it
    to be installed and healthy. Resources created by a failed attempt are rolled back newest
    first until the cluster create call has gone through; after that the cluster id is attached
    to the raised ClusterError and teardown belongs to ``delete_cluster``.
    """

    def __init__(
            self,
            rosa: RosaCli,
            ocm: OcmClient,
            region: str,
            fedramp: bool = False,
            ocm_environment: OcmEnvironment = OcmEnvironment.PRODUCTION,
            billing_account: str = '',
            network: NetworkStackProvisioner | None = None,
            health_checker_factory: HealthCheckerFactory | None = None,
            poll_interval: float = DEFAULT_POLL_INTERVAL,
            logger: logging.Logger | None = None,
    ) -> None:
        self._logger = logger or setup_logger('ClusterOrchestrator')

        self._rosa = rosa
        self._ocm = ocm
        self._region = region
        self._fedramp = fedramp
        self._ocm_environment = ocm_environment
        self._billing_account = billing_account
        self._poll_interval = poll_interval
        self._health_checker_factory = health_checker_factory or (
            lambda kubeconfig: ClusterHealthChecker(KubernetesClient(kubeconfig), poll_interval)
        )

        self.regions = RegionSelector(rosa)
        self.versions = VersionSelector(rosa, poll_interval)
        self.account_roles = AccountRolesResolver(rosa, fedramp, self._logger)
        self.oidc_configs = OidcConfigResolver(rosa, ocm, fedramp, self._logger)
        self.operator_roles = OperatorRoles(rosa, self._logger)
        self.network = network or NetworkStackProvisioner(rosa.runner, logger=self._logger)
        self.logs = ClusterLogs(rosa, self._logger)

    async def create_cluster(self, options: CreateClusterOptions) -> str:
        action = 'create'
        options = options.with_defaults()

        try:
            validate_preflight(options)

            self._logger.info(f'Creating cluster, cluster_name={options.cluster_name}, version={options.version}, '
                              f'hosted_cp={options.hosted_cp}, aws_region={self._region}, '
                              f'ocm_environment={self._ocm_environment}')

            if options.channel_group == NIGHTLY_CHANNEL_GROUP:
                await self.versions.wait_for_version(options.version, options.channel_group, options.hosted_cp)

            await self.regions.region_check(self._region, options.hosted_cp, options.multi_az)
        except RosaPilotError as e:
            raise ClusterError(action, e) from e

        tracker = CreatedResourcesTracker()

        try:
            options, roles = await self._provision_dependencies(options, tracker)
            validate_create_options(options, roles)
            cluster_id = await self._create(options, roles)
        except asyncio.CancelledError:
            await self._compensate(tracker)
            raise
        except Exception as e:
            await self._compensate(tracker)
            raise ClusterError(action, e) from e

        try:
            await self._wait_for_install(cluster_id, options)

            if not options.skip_health_check:
                await self._wait_for_health(cluster_id, options)
        except RosaPilotError as e:
            raise ClusterError(action, e, cluster_id=cluster_id) from e

        self._logger.info(f'Cluster created, cluster_name={options.cluster_name}, {cluster_id=}')

        return cluster_id

    async def _provision_dependencies(
            self, options: CreateClusterOptions, tracker: CreatedResourcesTracker
    ) -> tuple[CreateClusterOptions, AccountRoles]:
        roles = AccountRoles()

        if options.needs_account_roles:
            version = major_minor(options.version)

            if options.use_default_account_roles_prefix:
                prefix = f'{DEFAULT_ACCOUNT_ROLES_PREFIX}-{version}'
                on_roles_created = None
            else:
                prefix = options.cluster_name
                on_roles_created = partial(
                    tracker.record, ResourceKind.ACCOUNT_ROLES, prefix, partial(self.account_roles.delete, prefix)
                )

            with phase(AccountRolesError, 'create'):
                roles = await self.account_roles.resolve(
                    prefix, version, options.channel_group, options.hosted_cp, on_create=on_roles_created
                )

            if not options.oidc_config_id:
                def on_oidc_config_created(oidc_config_id: str) -> None:
                    tracker.record(
                        ResourceKind.OIDC_CONFIG, oidc_config_id, partial(self.oidc_configs.delete, oidc_config_id)
                    )

                with phase(OidcConfigError, 'create'):
                    oidc_config_id = await self.oidc_configs.resolve(
                        options.cluster_name, roles.installer_role_arn, on_create=on_oidc_config_created
                    )
                options = replace(options, oidc_config_id=oidc_config_id)

        if options.needs_network_stack and not options.subnet_ids:
            working_dir = options.working_dir
            on_network_created = partial(
                tracker.record,
                ResourceKind.NETWORK_STACK,
                str(working_dir),
                partial(self.network.delete, options.cluster_name, self._region, working_dir),
            )

            with phase(VpcError, 'create'):
                stack = await self.network.create(
                    options.cluster_name,
                    self._region,
                    working_dir,
                    options.hosted_cp,
                    options.private_link,
                    vpc_cidr=options.machine_cidr,
                    on_create=on_network_created,
                )
            options = replace(options, subnet_ids=stack.subnet_ids)

        return options, roles

    async def _create(self, options: CreateClusterOptions, roles: AccountRoles) -> str:
        arguments = ClusterArguments(
            options=options,
            region=self._region,
            roles=roles,
            billing_account=self._billing_account,
            production=self._ocm_environment == OcmEnvironment.PRODUCTION,
        )

        await self._rosa.run(*build_create_cluster_args(arguments))

        cluster = await self._ocm.find_cluster(options.cluster_name)
        self._logger.info(f'Cluster creation initiated, cluster_name={options.cluster_name}, cluster_id={cluster.id}')

        return cluster.id

    async def _compensate(self, tracker: CreatedResourcesTracker) -> None:
        if not len(tracker):
            return

        self._logger.info(f'Cluster creation failed, rolling back {len(tracker)} created resource(s)')

        failed = await tracker.rollback(self._logger)
        if failed:
            self._logger.error(f'Resources left behind after rollback: {", ".join(map(str, failed))}')

    async def _collect_logs(self, log_type: ClusterLogType, cluster_name: str, report_dir: Path) -> None:
        try:
            await self.logs.collect(log_type, cluster_name, report_dir)
        except Exception as e:
            self._logger.exception(f'Failed to collect cluster {log_type} logs: {e}', exc_info=True)

    async def _wait_for_install(self, cluster_id: str, options: CreateClusterOptions) -> None:
        cluster_name = options.cluster_name
        timeout = options.install_timeout.total_seconds()

        self._logger.info(f'Waiting for cluster to be installed, {cluster_id=}, {cluster_name=}, {timeout=}')

        async def installed() -> bool:
            cluster = await self._rosa.run_json(
                ClusterRecord, 'describe', 'cluster', '--cluster', cluster_id, '--output', 'json'
            )
            state = cluster.current_state

            if state in FAILED_STATES:
                raise InconsistentStateError(f'cluster {cluster_id} entered state {state!r} while installing')

            if state != READY_STATE:
                self._logger.info(f'Cluster not in ready state, {cluster_id=}, {state=}')
                return False

            return True

        try:
            await wait_for(installed, timeout, self._poll_interval, f'cluster {cluster_name} to be installed')
        except (PollTimeoutError, InconsistentStateError):
            await self._collect_logs(ClusterLogType.INSTALL, cluster_name, options.artifact_dir)
            raise

        self._logger.info(f'Cluster is ready, {cluster_id=}, {cluster_name=}')

    async def _wait_for_health(self, cluster_id: str, options: CreateClusterOptions) -> None:
        kubeconfig = await self._ocm.kubeconfig_file(cluster_id, options.working_dir)

        expected_nodes = 0
        if options.hosted_cp:
            expected_nodes = (await self._ocm.get_cluster(cluster_id)).expected_compute_nodes

        checker = self._health_checker_factory(kubeconfig)
        await checker.wait_until_healthy(
            options.health_check_timeout.total_seconds(),
            options.hosted_cp,
            options.artifact_dir,
            expected_nodes=expected_nodes,
        )

    async def delete_cluster(self, options: DeleteClusterOptions) -> None:
        action = 'delete'
        options = options.with_defaults()

        try:
            cluster = await self._ocm.find_cluster(options.cluster_name)
        except RosaPilotError as e:
            raise ClusterError(
                action, f'failed to locate cluster in ocm environment {self._ocm_environment}: {e}'
            ) from e

        options = replace(
            options,
            oidc_config_id=cluster.oidc_config_id,
            working_dir=options.working_dir or cluster_working_dir(cluster.name),
        )

        try:
            await self._delete(cluster, options)
        except RosaPilotError as e:
            raise ClusterError(action, e, cluster_id=cluster.id) from e

        self._logger.info(f'Cluster deleted, cluster_name={cluster.name}, cluster_id={cluster.id}')

    async def _delete(self, cluster: ClusterRecord, options: DeleteClusterOptions) -> None:
        self._logger.info(f'Initiating cluster deletion, cluster_id={cluster.id}, '
                          f'ocm_environment={self._ocm_environment}')

        await self._rosa.run('delete', 'cluster', '--cluster', cluster.id, '--yes')
        await self._wait_for_deletion(cluster, options)

        if options.sts or options.private_link:
            with phase(OperatorRolesError, 'delete'):
                await self.operator_roles.delete(cluster.id, cluster.aws.sts.operator_role_prefix)

            with phase(OidcConfigError, 'delete'):
                await self.oidc_configs.delete_provider(cluster_id=cluster.id, oidc_config_id=options.oidc_config_id)

        if options.hosted_cp or options.private_link:
            if options.delete_oidc_config:
                if options.oidc_config_id:
                    with phase(OidcConfigError, 'delete'):
                        await self.oidc_configs.delete(options.oidc_config_id)
                else:
                    self._logger.warning(f'Cluster record has no oidc config to delete, cluster_id={cluster.id}')

            if options.delete_hosted_vpc:
                with phase(VpcError, 'delete'):
                    await self.network.delete(cluster.name, self._region, options.working_dir)

        if options.sts:
            if DEFAULT_ACCOUNT_ROLES_PREFIX in cluster.aws.sts.role_arn:
                self._logger.info(f'Keeping shared account roles, role_arn={cluster.aws.sts.role_arn}')
            else:
                with phase(AccountRolesError, 'delete'):
                    await self.account_roles.delete(cluster.name)

    async def _wait_for_deletion(self, cluster: ClusterRecord, options: DeleteClusterOptions) -> None:
        timeout = options.uninstall_timeout.total_seconds()

        self._logger.info(f'Waiting for cluster to be deleted, cluster_id={cluster.id}, {timeout=}')

        async def deleted() -> bool:
            try:
                await self._ocm.find_cluster(cluster.id)
            except ClusterNotFoundError:
                return True

            return False

        try:
            await wait_for(deleted, timeout, self._poll_interval, f'cluster {cluster.name} to be deleted')
        except PollTimeoutError:
            await self._collect_logs(ClusterLogType.UNINSTALL, cluster.name, options.artifact_dir)
            raise
