from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from pathlib import Path

from rosapilot.config import BASE_WORKING_DIR, DEFAULT_ARTIFACT_DIR
from rosapilot.exceptions import ValidationError
from rosapilot.providers.rosa.account_roles import AccountRoles

DEFAULT_CHANNEL_GROUP = 'stable'
DEFAULT_COMPUTE_MACHINE_TYPE = 'm5.xlarge'
DEFAULT_MACHINE_CIDR = '10.0.0.0/16'
DEFAULT_REPLICAS = 2
MULTI_AZ_MIN_REPLICAS = 3
DEFAULT_NETWORK_TYPE = 'OVNKubernetes'

HCP_INSTALL_TIMEOUT = timedelta(minutes=30)
HCP_HEALTH_CHECK_TIMEOUT = timedelta(minutes=20)
CLASSIC_INSTALL_TIMEOUT = timedelta(minutes=120)
CLASSIC_HEALTH_CHECK_TIMEOUT = timedelta(minutes=45)
UNINSTALL_TIMEOUT = timedelta(minutes=30)


def cluster_working_dir(cluster_name: str) -> Path:
    return BASE_WORKING_DIR / cluster_name


@dataclass(frozen=True)
class CreateClusterOptions:
    cluster_name: str
    version: str
    channel_group: str = ''

    hosted_cp: bool = False
    multi_az: bool = False
    sts: bool = False
    private_link: bool = False
    mint_mode: bool = False
    fips: bool = False
    enable_autoscaling: bool = False
    etcd_encryption: bool = False

    compute_machine_type: str = ''
    replicas: int = 0
    min_replicas: int = 0
    max_replicas: int = 0

    machine_cidr: str = ''
    pod_cidr: str = ''
    service_cidr: str = ''
    host_prefix: int = 0
    network_type: str = ''

    http_proxy: str = ''
    https_proxy: str = ''
    no_proxy: str = ''
    additional_trust_bundle_file: str = ''

    properties: Mapping[str, str] = field(default_factory=dict)
    expiration: timedelta | None = None

    install_timeout: timedelta | None = None
    health_check_timeout: timedelta | None = None
    skip_health_check: bool = False

    artifact_dir: Path | None = None
    working_dir: Path | None = None

    use_default_account_roles_prefix: bool = False
    oidc_config_id: str = ''
    subnet_ids: str = ''
    billing_account: str = ''

    defaulted: bool = field(default=False, compare=False)

    def with_defaults(self) -> 'CreateClusterOptions':
        """Fill zero-valued fields with their domain defaults; calling it again is a no-op."""
        if self.defaulted:
            return self

        hosted_cp = self.hosted_cp

        replicas = self.replicas or DEFAULT_REPLICAS
        if self.multi_az:
            replicas = max(replicas, MULTI_AZ_MIN_REPLICAS)

        return replace(
            self,
            sts=self.sts or hosted_cp,
            channel_group=self.channel_group or DEFAULT_CHANNEL_GROUP,
            compute_machine_type=self.compute_machine_type or DEFAULT_COMPUTE_MACHINE_TYPE,
            machine_cidr=self.machine_cidr or DEFAULT_MACHINE_CIDR,
            replicas=replicas,
            install_timeout=self.install_timeout or (HCP_INSTALL_TIMEOUT if hosted_cp else CLASSIC_INSTALL_TIMEOUT),
            health_check_timeout=self.health_check_timeout or (
                HCP_HEALTH_CHECK_TIMEOUT if hosted_cp else CLASSIC_HEALTH_CHECK_TIMEOUT
            ),
            artifact_dir=self.artifact_dir or DEFAULT_ARTIFACT_DIR,
            working_dir=self.working_dir or cluster_working_dir(self.cluster_name),
            defaulted=True,
        )

    @property
    def needs_account_roles(self) -> bool:
        return self.hosted_cp or self.sts

    @property
    def needs_network_stack(self) -> bool:
        return self.hosted_cp or self.private_link

    @property
    def autoscaling(self) -> bool:
        return self.enable_autoscaling or self.min_replicas > 0 or self.max_replicas > 0


@dataclass(frozen=True)
class DeleteClusterOptions:
    cluster_name: str

    hosted_cp: bool = False
    sts: bool = False
    private_link: bool = False
    mint_mode: bool = False

    # None deletes the network stack whenever the create flow would have provisioned one
    delete_hosted_vpc: bool | None = None
    delete_oidc_config: bool = False

    # defaults to the working dir of the cluster's name once the cluster is looked up,
    # cluster_name may be an id
    working_dir: Path | None = None
    artifact_dir: Path | None = None
    uninstall_timeout: timedelta | None = None

    # always taken from the live cluster record
    oidc_config_id: str = ''

    defaulted: bool = field(default=False, compare=False)

    def with_defaults(self) -> 'DeleteClusterOptions':
        if self.defaulted:
            return self

        delete_hosted_vpc = self.delete_hosted_vpc
        if delete_hosted_vpc is None:
            delete_hosted_vpc = self.hosted_cp or self.private_link

        return replace(
            self,
            sts=self.sts or self.hosted_cp,
            delete_hosted_vpc=delete_hosted_vpc,
            artifact_dir=self.artifact_dir or DEFAULT_ARTIFACT_DIR,
            uninstall_timeout=self.uninstall_timeout or UNINSTALL_TIMEOUT,
            defaulted=True,
        )


def validate_create_options(options: CreateClusterOptions, roles: AccountRoles | None = None) -> None:
    errors = []

    if not options.cluster_name:
        errors.append('cluster name is required')

    if not options.version:
        errors.append('version is required')

    if options.hosted_cp:
        if not options.oidc_config_id:
            errors.append('oidc config id is required for hosted control plane clusters')
        if not options.subnet_ids:
            errors.append('subnet ids are required for hosted control plane clusters')

    if options.needs_account_roles:
        if roles is None or not all(roles.base_roles):
            errors.append('installer, control plane, support and worker role arns are required for sts clusters')
        elif options.hosted_cp and not all(roles.hcp_roles):
            errors.append('hosted control plane installer, support and worker role arns are required')

    if errors:
        raise ValidationError('create cluster options', errors)


def validate_preflight(options: CreateClusterOptions) -> None:
    errors = []

    if not options.cluster_name:
        errors.append('cluster name is required')

    if not options.version:
        errors.append('version is required')

    if errors:
        raise ValidationError('create cluster options', errors)


@dataclass(frozen=True)
class ClusterArguments:
    options: CreateClusterOptions
    region: str
    roles: AccountRoles = field(default_factory=AccountRoles)
    billing_account: str = ''
    production: bool = True
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Condition = Callable[[ClusterArguments], bool]
Renderer = Callable[[ClusterArguments], list[str]]


def _always(_: ClusterArguments) -> bool:
    return True


def _flag(name: str, flag: str) -> tuple[Condition, Renderer]:
    return (lambda a: bool(getattr(a.options, name))), (lambda a: [flag])


def _value(name: str, flag: str) -> tuple[Condition, Renderer]:
    return (lambda a: bool(getattr(a.options, name))), (lambda a: [flag, str(getattr(a.options, name))])


def _proxy(name: str, flag: str) -> tuple[Condition, Renderer]:
    # proxies only apply to clusters installed into existing subnets
    return (
        lambda a: bool(a.options.subnet_ids and getattr(a.options, name)),
        lambda a: [flag, str(getattr(a.options, name))],
    )


def _properties(a: ClusterArguments) -> list[str]:
    args = []
    for key, value in a.options.properties.items():
        args.extend(['--properties', f'{key}:{value}'])

    return args


def _expiration_time(a: ClusterArguments) -> list[str]:
    return ['--expiration-time', (a.now + a.options.expiration).strftime('%Y-%m-%dT%H:%M:%SZ')]


CREATE_CLUSTER_ARGUMENTS: dict[str, tuple[Condition, Renderer]] = {
    'cluster_name': (_always, lambda a: ['--cluster-name', a.options.cluster_name]),
    'channel_group': (_always, lambda a: ['--channel-group', a.options.channel_group]),
    'version': (_always, lambda a: ['--version', a.options.version]),
    'region': (_always, lambda a: ['--region', a.region]),
    'compute_machine_type': _value('compute_machine_type', '--compute-machine-type'),
    'machine_cidr': _value('machine_cidr', '--machine-cidr'),
    'pod_cidr': _value('pod_cidr', '--pod-cidr'),
    'service_cidr': _value('service_cidr', '--service-cidr'),
    'host_prefix': (lambda a: a.options.host_prefix > 0, lambda a: ['--host-prefix', str(a.options.host_prefix)]),
    'network_type': (
        lambda a: bool(a.options.network_type) and a.options.network_type != DEFAULT_NETWORK_TYPE,
        lambda a: ['--network-type', a.options.network_type],
    ),
    'properties': (lambda a: bool(a.options.properties), _properties),
    'mode': (lambda a: a.options.hosted_cp or a.options.sts, lambda a: ['--mode', 'auto']),
    'sts': _flag('sts', '--sts'),
    'hosted_cp': _flag('hosted_cp', '--hosted-cp'),
    'classic_account_roles': (
        lambda a: a.options.sts and not a.options.hosted_cp,
        lambda a: [
            '--role-arn', a.roles.installer_role_arn,
            '--controlplane-iam-role', a.roles.control_plane_role_arn,
            '--support-role-arn', a.roles.support_role_arn,
            '--worker-iam-role', a.roles.worker_role_arn,
        ],
    ),
    'hcp_account_roles': (
        lambda a: a.options.hosted_cp,
        lambda a: [
            '--role-arn', a.roles.hcp_installer_role_arn,
            '--support-role-arn', a.roles.hcp_support_role_arn,
            '--worker-iam-role', a.roles.hcp_worker_role_arn,
        ],
    ),
    'billing_account': (
        lambda a: a.options.hosted_cp and bool(a.options.billing_account or a.billing_account),
        lambda a: ['--billing-account', a.options.billing_account or a.billing_account],
    ),
    'oidc_config_id': _value('oidc_config_id', '--oidc-config-id'),
    'subnet_ids': _value('subnet_ids', '--subnet-ids'),
    'mint_mode': _flag('mint_mode', '--mint-mode'),
    'private_link': _flag('private_link', '--private-link'),
    'fips': _flag('fips', '--fips'),
    'multi_az': _flag('multi_az', '--multi-az'),
    'enable_autoscaling': _flag('enable_autoscaling', '--enable-autoscaling'),
    'etcd_encryption': _flag('etcd_encryption', '--etcd-encryption'),
    'min_replicas': (lambda a: a.options.min_replicas > 0, lambda a: ['--min-replicas', str(a.options.min_replicas)]),
    'max_replicas': (lambda a: a.options.max_replicas > 0, lambda a: ['--max-replicas', str(a.options.max_replicas)]),
    'replicas': (lambda a: not a.options.autoscaling, lambda a: ['--replicas', str(a.options.replicas)]),
    'http_proxy': _proxy('http_proxy', '--http-proxy'),
    'https_proxy': _proxy('https_proxy', '--https-proxy'),
    'no_proxy': _proxy('no_proxy', '--no-proxy'),
    'additional_trust_bundle_file': _proxy('additional_trust_bundle_file', '--additional-trust-bundle-file'),
    'expiration': (lambda a: bool(a.options.expiration) and not a.production, _expiration_time),
}


def build_create_cluster_args(arguments: ClusterArguments) -> list[str]:
    args = ['create', 'cluster', '--output', 'json', '--yes']

    for condition, render in CREATE_CLUSTER_ARGUMENTS.values():
        if condition(arguments):
            args.extend(render(arguments))

    return args
