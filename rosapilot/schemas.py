from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from rosapilot.exceptions import MalformedOutputError

T = TypeVar('T')


class Schema(BaseModel):
    model_config = ConfigDict(extra='ignore', populate_by_name=True)


class CloudRegion(Schema):
    id: str
    display_name: str = ''
    enabled: bool = False
    supports_multi_az: bool = False
    supports_hypershift: bool = False
    ccs_only: bool = False


class OpenShiftVersion(Schema):
    id: str
    raw_id: str
    channel_group: str = 'stable'
    enabled: bool = False
    default: bool = False
    rosa_enabled: bool = False
    hosted_control_plane_enabled: bool = False
    available_upgrades: list[str] = Field(default_factory=list)


class AccountRoleRecord(Schema):
    role_name: str = Field(alias='RoleName')
    role_arn: str = Field(alias='RoleARN')
    role_type: str = Field(alias='RoleType')
    version: str = Field(default='', alias='Version')
    managed_policy: bool = Field(default=False, alias='ManagedPolicy')


class CreatedOidcConfig(Schema):
    id: str


class WhoAmI(Schema):
    aws_account_id: str = Field(alias='AWS Account ID')
    aws_default_region: str = Field(default='', alias='AWS Default Region')
    aws_arn: str = Field(default='', alias='AWS ARN')
    ocm_api: str = Field(default='', alias='OCM API')
    ocm_account_username: str = Field(default='', alias='OCM Account Username')


class ObjectReference(Schema):
    id: str = ''


class StsSettings(Schema):
    enabled: bool = False
    role_arn: str = ''
    operator_role_prefix: str = ''
    oidc_config: ObjectReference | None = None


class AwsSettings(Schema):
    sts: StsSettings = Field(default_factory=StsSettings)
    private_link: bool = False
    subnet_ids: list[str] = Field(default_factory=list)


class AutoscaleSettings(Schema):
    min_replicas: int = 0
    max_replicas: int = 0


class NodeSettings(Schema):
    compute: int = 0
    autoscale_compute: AutoscaleSettings | None = None


class ClusterStatus(Schema):
    state: str = ''
    description: str = ''


class ClusterRecord(Schema):
    id: str
    name: str = ''
    state: str = ''
    status: ClusterStatus | None = None
    aws: AwsSettings = Field(default_factory=AwsSettings)
    hypershift: dict[str, Any] = Field(default_factory=dict)
    nodes: NodeSettings = Field(default_factory=NodeSettings)
    version: ObjectReference | None = None

    @property
    def current_state(self) -> str:
        if self.status is not None and self.status.state:
            return self.status.state

        return self.state

    @property
    def oidc_config_id(self) -> str:
        oidc_config = self.aws.sts.oidc_config
        return oidc_config.id if oidc_config is not None else ''

    @property
    def hosted_cp(self) -> bool:
        return bool(self.hypershift.get('enabled', False))

    @property
    def expected_compute_nodes(self) -> int:
        if self.nodes.autoscale_compute is not None:
            return self.nodes.autoscale_compute.min_replicas

        return self.nodes.compute


class OidcConfigRecord(Schema):
    id: str
    secret_arn: str = ''
    issuer_url: str = ''
    managed: bool = False


class VersionGate(Schema):
    id: str
    label: str = ''
    version_raw_id_prefix: str = ''
    sts_only: bool = False
    description: str = ''


class GateAgreement(Schema):
    id: str = ''
    version_gate: ObjectReference


class UpgradePolicy(Schema):
    id: str = ''
    version: str
    schedule_type: str = 'manual'
    upgrade_type: str = 'OSD'
    next_run: str = ''


class ItemList(Schema):
    items: list[dict[str, Any]] = Field(default_factory=list)
    page: int = 1
    size: int = 0
    total: int = 0


def parse_json(schema: type[T] | Any, payload: str | bytes, source: str) -> T:
    """Validate raw tool or API output against ``schema``, reporting failures as a remote-call error."""
    try:
        return TypeAdapter(schema).validate_json(payload)
    except PydanticValidationError as e:
        raise MalformedOutputError(source, e) from e


def parse_object(schema: type[T] | Any, payload: Any, source: str) -> T:
    try:
        return TypeAdapter(schema).validate_python(payload)
    except PydanticValidationError as e:
        raise MalformedOutputError(source, e) from e
