import os
import shutil
from dataclasses import dataclass, field

from rosapilot.clients.ocm_client import OcmClient, OcmEnvironment
from rosapilot.clients.terraform import TerraformRunner
from rosapilot.config import DEFAULT_POLL_INTERVAL, OCM_CONFIG_PATH, ROSA_BINARY, TERRAFORM_BINARY
from rosapilot.core.command_runner import CommandRunner
from rosapilot.core.credentials import AWSCredentials
from rosapilot.exceptions import ProviderError, RosaPilotError, UpgradeError
from rosapilot.providers.base_provider import BaseProvider
from rosapilot.providers.rosa.cluster import ClusterOrchestrator
from rosapilot.providers.rosa.options import CreateClusterOptions, DeleteClusterOptions
from rosapilot.providers.rosa.regions import RegionSelector
from rosapilot.providers.rosa.rosa_cli import RosaCli
from rosapilot.providers.rosa.upgrade import UpgradeScheduler
from rosapilot.providers.rosa.vpc import NetworkStackProvisioner
from rosapilot.schemas import OpenShiftVersion, UpgradePolicy, WhoAmI

OCM_ENVIRONMENTS = {
    'production': OcmEnvironment.PRODUCTION,
    'stage': OcmEnvironment.STAGE,
    'integration': OcmEnvironment.INTEGRATION,
    'fedramp-production': OcmEnvironment.FEDRAMP_PRODUCTION,
    'fedramp-stage': OcmEnvironment.FEDRAMP_STAGE,
    'fedramp-integration': OcmEnvironment.FEDRAMP_INTEGRATION,
}


def ocm_environment(value: str | OcmEnvironment) -> OcmEnvironment:
    """Accept either a short environment name or the api url itself."""
    if isinstance(value, OcmEnvironment):
        return value

    try:
        return OCM_ENVIRONMENTS.get(value.lower()) or OcmEnvironment(value.rstrip('/'))
    except ValueError:
        raise ValueError(f'Unknown ocm environment: {value}') from None


@dataclass
class RosaConfig:
    token: str = field(default='', repr=False)
    client_id: str = ''
    client_secret: str = field(default='', repr=False)
    ocm_environment: OcmEnvironment = OcmEnvironment.PRODUCTION
    aws_credentials: AWSCredentials = field(default_factory=AWSCredentials)
    rosa_binary: str = ROSA_BINARY
    terraform_binary: str = TERRAFORM_BINARY
    poll_interval: float = DEFAULT_POLL_INTERVAL

    def __post_init__(self) -> None:
        self.ocm_environment = ocm_environment(self.ocm_environment)

    @classmethod
    def from_env(cls) -> 'RosaConfig':
        return cls(
            token=os.getenv('OCM_TOKEN', ''),
            client_id=os.getenv('OCM_CLIENT_ID', ''),
            client_secret=os.getenv('OCM_CLIENT_SECRET', ''),
            ocm_environment=os.getenv('OCM_ENVIRONMENT', 'production'),
            aws_credentials=AWSCredentials.from_env(),
        )


def login_args(config: RosaConfig, region: str) -> list[str]:
    args = ['login']

    if config.token:
        args.extend(['--token', config.token])
    else:
        args.extend(['--client-id', config.client_id, '--client-secret', config.client_secret])

    if config.ocm_environment == OcmEnvironment.FEDRAMP_INTEGRATION:
        args.extend(['--govcloud', '--env', 'integration'])
    else:
        if config.ocm_environment.is_fedramp:
            args.append('--govcloud')
        args.extend(['--env', str(config.ocm_environment)])

    if region:
        args.extend(['--region', region])

    return args


class RosaProvider(BaseProvider):
    """
    Entry point for one logged-in ROSA session.

    ``connect`` logs the rosa cli in and builds the orchestrator; every other operation requires it.
    Use it as an async context manager so the ocm http client is closed on exit.
    """

    name = 'rosa'

    def __init__(self, config: RosaConfig, runner: CommandRunner | None = None) -> None:
        super().__init__()

        self._config = config
        self._runner = runner or CommandRunner(logger=self._logger)

        self.region = ''
        self.billing_account = ''
        self.rosa: RosaCli | None = None
        self.ocm: OcmClient | None = None
        self.orchestrator: ClusterOrchestrator | None = None

    async def __aenter__(self) -> 'RosaProvider':
        await self.connect()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self.ocm is not None:
            await self.ocm.close()
            self.ocm = None
            self.orchestrator = None

    async def connect(self) -> 'RosaProvider':
        config = self._config

        if not config.token and not (config.client_id and config.client_secret):
            raise ProviderError('ocm credentials are missing, set an offline token or a client id and secret')

        try:
            credentials = config.aws_credentials.resolve()
        except ValueError as e:
            raise ProviderError(e) from e

        if shutil.which(config.rosa_binary) is None:
            raise ProviderError(f'{config.rosa_binary} binary not found on PATH')

        region = '' if credentials.is_random_region else credentials.region

        runner = self._runner.with_env(OCM_CONFIG=str(OCM_CONFIG_PATH), **credentials.as_env())
        if region:
            runner = runner.with_env(AWS_REGION=region)

        try:
            rosa = RosaCli(runner, config.rosa_binary)

            version = await rosa.run('version')
            self._logger.info(f'Using rosa cli version {version.stdout.strip()}')

            await rosa.run(*login_args(config, region))

            whoami = await rosa.run_json(WhoAmI, 'whoami', '--output', 'json')
            self._logger.info(f'Logged in, aws_account_id={whoami.aws_account_id}, ocm_api={whoami.ocm_api}')

            if not region:
                region = await RegionSelector(rosa).select_random_region()
                self._logger.info(f'Selected random region {region}')
                runner = runner.with_env(AWS_REGION=region)
                rosa = RosaCli(runner, config.rosa_binary)
        except RosaPilotError as e:
            raise ProviderError(e) from e

        self.region = region
        self.billing_account = whoami.aws_account_id
        self.rosa = rosa
        self.ocm = OcmClient(
            config.ocm_environment,
            token=config.token,
            client_id=config.client_id,
            client_secret=config.client_secret,
        )
        self.orchestrator = ClusterOrchestrator(
            rosa,
            self.ocm,
            region,
            fedramp=credentials.is_fedramp or config.ocm_environment.is_fedramp,
            ocm_environment=config.ocm_environment,
            billing_account=self.billing_account,
            network=NetworkStackProvisioner(
                runner,
                terraform_factory=lambda working_dir: TerraformRunner(working_dir, runner, config.terraform_binary),
                logger=self._logger,
            ),
            poll_interval=config.poll_interval,
            logger=self._logger,
        )

        return self

    def _connected(self) -> ClusterOrchestrator:
        if self.orchestrator is None:
            raise ProviderError('provider is not connected, call connect() first')

        return self.orchestrator

    async def create_cluster(self, options: CreateClusterOptions) -> str:
        return await self._connected().create_cluster(options)

    async def delete_cluster(self, options: DeleteClusterOptions) -> None:
        await self._connected().delete_cluster(options)

    async def versions(
            self, channel_group: str, hosted_cp: bool = False, constraints: tuple[str, ...] = ()
    ) -> list[OpenShiftVersion]:
        return await self._connected().versions.versions(channel_group, hosted_cp, constraints)

    async def schedule_upgrade(self, cluster_name: str, upgrade_version: str) -> UpgradePolicy:
        self._connected()

        try:
            cluster = await self.ocm.find_cluster(cluster_name)
        except RosaPilotError as e:
            raise UpgradeError('find', e) from e

        if cluster.version is None or not cluster.version.id:
            raise UpgradeError('schedule', f'cluster {cluster_name} reports no current version')

        return await UpgradeScheduler(self.ocm, self._logger).schedule_upgrade(
            cluster.id, cluster.version.id, upgrade_version, hosted_cp=cluster.hosted_cp
        )
