import json
from collections.abc import Callable
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from rosapilot.core.command_runner import CommandResult
from rosapilot.exceptions import ClusterNotFoundError, CommandError
from rosapilot.providers.rosa.rosa_cli import RosaCli
from rosapilot.schemas import ClusterRecord, OidcConfigRecord

Response = CommandResult | Callable[[tuple[str, ...]], CommandResult]


class FakeCommandRunner:
    """
    Records every argv and replays canned output.

    Responses are matched on the arguments after the binary name by prefix. Several responses for
    the same prefix are consumed in order, the last one is repeated.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, ...]] = []
        self.env: dict[str, str] = {}
        self._responses: list[tuple[tuple[str, ...], list[Response]]] = []

    def with_env(self, **extra: str) -> 'FakeCommandRunner':
        self.env.update(extra)
        return self

    def on(self, *prefix: str, stdout: object = '', returncode: int = 0, stderr: str = '',
           action: Callable[[tuple[str, ...]], None] | None = None) -> 'FakeCommandRunner':
        if not isinstance(stdout, str):
            stdout = json.dumps(stdout)

        def respond(args: tuple[str, ...]) -> CommandResult:
            if action is not None:
                action(args)
            return CommandResult(args, returncode, stdout, stderr)

        for registered, responses in self._responses:
            if registered == prefix:
                responses.append(respond)
                return self

        self._responses.append((prefix, [respond]))
        return self

    async def run(self, *args: str, cwd: Path | None = None, check: bool = True) -> CommandResult:
        self.calls.append(args)

        result = CommandResult(args, 0)
        for prefix, responses in self._responses:
            if args[1:len(prefix) + 1] == prefix:
                respond = responses.pop(0) if len(responses) > 1 else responses[0]
                result = respond(args)
                break

        if check and result.returncode != 0:
            raise CommandError(args, result.returncode, result.stdout, result.stderr)

        return result

    def commands(self, *prefix: str) -> list[tuple[str, ...]]:
        """Recorded calls whose arguments after the binary start with ``prefix``."""
        return [call for call in self.calls if call[1:len(prefix) + 1] == prefix]


class FakeOcmClient:
    def __init__(self) -> None:
        self.clusters: dict[str, ClusterRecord] = {}
        self.oidc_configs: list[OidcConfigRecord] = []
        self.kubeconfig_requests: list[str] = []

    def add_cluster(self, cluster: ClusterRecord) -> ClusterRecord:
        self.clusters[cluster.id] = cluster
        return cluster

    def remove_cluster(self, name_or_id: str) -> None:
        cluster = self._lookup(name_or_id)
        if cluster is not None:
            del self.clusters[cluster.id]

    def _lookup(self, name_or_id: str) -> ClusterRecord | None:
        for cluster in self.clusters.values():
            if name_or_id in (cluster.id, cluster.name):
                return cluster

        return None

    async def find_cluster(self, name_or_id: str) -> ClusterRecord:
        cluster = self._lookup(name_or_id)
        if cluster is None:
            raise ClusterNotFoundError(name_or_id)

        return cluster

    async def get_cluster(self, cluster_id: str) -> ClusterRecord:
        return await self.find_cluster(cluster_id)

    async def list_oidc_configs(self) -> list[OidcConfigRecord]:
        return list(self.oidc_configs)

    async def kubeconfig_file(self, cluster_id: str, directory: Path) -> Path:
        self.kubeconfig_requests.append(cluster_id)

        path = directory / f'{cluster_id}-kubeconfig'
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text('apiVersion: v1\nkind: Config\n')

        return path


def account_roles_output(prefix: str, version: str, hosted_cp: bool = True) -> list[dict]:
    roles = [
        ('Installer-Role', 'Installer'),
        ('ControlPlane-Role', 'Control plane'),
        ('Support-Role', 'Support'),
        ('Worker-Role', 'Worker'),
    ]
    if hosted_cp:
        roles += [
            ('HCP-ROSA-Installer-Role', 'Installer'),
            ('HCP-ROSA-Support-Role', 'Support'),
            ('HCP-ROSA-Worker-Role', 'Worker'),
        ]

    return [
        {
            'RoleName': f'{prefix}-{name}',
            'RoleARN': f'arn:aws:iam::123456789012:role/{prefix}-{name}',
            'RoleType': role_type,
            'Version': version,
            'ManagedPolicy': True,
        }
        for name, role_type in roles
    ]


def terraform_outputs(hosted_cp: bool = True) -> dict:
    outputs = {
        'cluster-private-subnet': {'value': 'subnet-private', 'type': 'string', 'sensitive': False},
        'cluster-public-subnet': {'value': 'subnet-public', 'type': 'string', 'sensitive': False},
    }
    if hosted_cp:
        outputs['node-private-subnet'] = {'value': 'subnet-node', 'type': 'string', 'sensitive': False}

    return outputs


@pytest.fixture
def runner():
    return FakeCommandRunner()


@pytest.fixture
def rosa(runner):
    return RosaCli(runner, 'rosa')


@pytest.fixture
def ocm():
    return FakeOcmClient()


@pytest.fixture(autouse=True)
def mock_setup_logger():
    with patch('rosapilot.utils.setup_logger') as mock_logger:
        mock_logger.return_value = MagicMock()
        yield
