from datetime import timedelta
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from rosapilot.cli import app, load_options, parse_properties
from rosapilot.exceptions import ClusterError, ValidationError
from rosapilot.providers.rosa.options import CreateClusterOptions, DeleteClusterOptions
from rosapilot.schemas import OpenShiftVersion, UpgradePolicy

cli_runner = CliRunner()


class FakeProvider:
    def __init__(self) -> None:
        self.create_cluster = AsyncMock(return_value="c-1")
        self.delete_cluster = AsyncMock()
        self.versions = AsyncMock(return_value=[
            OpenShiftVersion(id="openshift-v4.14.3", raw_id="4.14.3", default=True, available_upgrades=["4.14.4"]),
        ])
        self.schedule_upgrade = AsyncMock(return_value=UpgradePolicy(id="p-1", version="4.15.2", next_run="soon"))

    async def __aenter__(self) -> "FakeProvider":
        return self

    async def __aexit__(self, *exc_info) -> None:
        pass


@pytest.fixture
def provider():
    provider = FakeProvider()
    with patch("rosapilot.cli.ProviderFactory.get_provider", return_value=provider):
        yield provider


class TestLoadOptions:
    def test_create_options_from_yaml(self, tmp_path: Path):
        options_file = tmp_path / "options.yaml"
        options_file.write_text(
            "cluster_name: demo\n"
            "version: 4.14.3\n"
            "hosted_cp: true\n"
            "install_timeout: 45\n"
            "working_dir: /tmp/demo\n"
            "properties:\n"
            "  owner: qe\n"
        )

        options = load_options(options_file, CreateClusterOptions)

        assert options.cluster_name == "demo"
        assert options.version == "4.14.3"
        assert options.hosted_cp
        assert options.install_timeout == timedelta(minutes=45)
        assert options.working_dir == Path("/tmp/demo")
        assert options.properties == {"owner": "qe"}

    def test_unquoted_numeric_version_is_rejected(self, tmp_path: Path):
        options_file = tmp_path / "options.yaml"
        options_file.write_text("cluster_name: demo\nversion: 4.10\n")

        with pytest.raises(ValidationError, match="version must be text, quote its value"):
            load_options(options_file, CreateClusterOptions)

    def test_quoted_version_is_kept(self, tmp_path: Path):
        options_file = tmp_path / "options.yaml"
        options_file.write_text("cluster_name: demo\nversion: \"4.10\"\n")

        assert load_options(options_file, CreateClusterOptions).version == "4.10"

    def test_unknown_keys_are_rejected(self, tmp_path: Path):
        options_file = tmp_path / "options.yaml"
        options_file.write_text("cluster_name: demo\nflavour: vanilla\nsize: xl\n")

        with pytest.raises(ValidationError) as exc_info:
            load_options(options_file, DeleteClusterOptions)

        assert len(exc_info.value.errors) == 2

    def test_not_a_mapping(self, tmp_path: Path):
        options_file = tmp_path / "options.yaml"
        options_file.write_text("- demo\n")

        with pytest.raises(ValidationError, match="expected a mapping"):
            load_options(options_file, CreateClusterOptions)


class TestParseProperties:
    def test_parse_properties(self):
        assert parse_properties(["owner:qe", "url:http://x"]) == {"owner": "qe", "url": "http://x"}

    def test_invalid_properties(self):
        with pytest.raises(ValidationError):
            parse_properties(["owner"])


class TestCommands:
    def test_create(self, provider):
        result = cli_runner.invoke(app, ["create", "-n", "demo", "--version", "4.14.3", "--hosted-cp", "--replicas", "3"])

        assert result.exit_code == 0, result.output
        assert "c-1" in result.output

        options = provider.create_cluster.await_args.args[0]
        assert options.cluster_name == "demo"
        assert options.hosted_cp
        assert options.replicas == 3

    def test_create_failure_exits_non_zero(self, provider):
        provider.create_cluster.side_effect = ClusterError("create", "install timed out", cluster_id="c-9")

        result = cli_runner.invoke(app, ["create", "-n", "demo", "--version", "4.14.3"])

        assert result.exit_code == 1

    def test_delete(self, provider):
        result = cli_runner.invoke(app, ["delete", "-n", "demo", "--hosted-cp", "--keep-vpc"])

        assert result.exit_code == 0, result.output

        options = provider.delete_cluster.await_args.args[0]
        assert options.hosted_cp
        assert options.delete_hosted_vpc is False

    def test_delete_requires_name(self, provider):
        result = cli_runner.invoke(app, ["delete"])

        assert result.exit_code == 1
        provider.delete_cluster.assert_not_awaited()

    def test_versions(self, provider):
        result = cli_runner.invoke(app, ["versions", "--channel-group", "candidate", "-c", "~4.14"])

        assert result.exit_code == 0, result.output
        assert "4.14.3" in result.output
        provider.versions.assert_awaited_once_with("candidate", False, ("~4.14",))

    def test_upgrade(self, provider):
        result = cli_runner.invoke(app, ["upgrade", "-n", "demo", "--version", "4.15.2"])

        assert result.exit_code == 0, result.output
        provider.schedule_upgrade.assert_awaited_once_with("demo", "4.15.2")
