import asyncio

import pytest

from rosapilot.exceptions import CommandError, ValidationError
from rosapilot.providers.rosa.oidc_config import OidcConfigResolver
from rosapilot.schemas import OidcConfigRecord


class TestOidcConfigResolver:
    def test_reuses_existing_config(self, runner, rosa, ocm):
        ocm.oidc_configs.append(OidcConfigRecord(id="oidc-1", secret_arn="arn:aws:secretsmanager:x:demo-oidc"))
        created = []

        oidc_config_id = asyncio.run(
            OidcConfigResolver(rosa, ocm, fedramp=False).resolve("demo", "arn:installer", on_create=created.append)
        )

        assert oidc_config_id == "oidc-1"
        assert created == []
        assert runner.calls == []

    def test_creates_unmanaged_config(self, runner, rosa, ocm):
        runner.on("create", "oidc-config", stdout={"id": "oidc-2"})
        created = []

        oidc_config_id = asyncio.run(
            OidcConfigResolver(rosa, ocm, fedramp=False).resolve("demo", "arn:installer", on_create=created.append)
        )

        assert oidc_config_id == "oidc-2"
        assert created == ["oidc-2"]
        assert runner.calls == [(
            "rosa", "create", "oidc-config", "--output", "json", "--mode", "auto", "--yes",
            "--managed=false", "--prefix", "demo", "--installer-role-arn", "arn:installer",
        )]

    def test_fedramp_creates_managed_config(self, runner, rosa, ocm):
        runner.on("create", "oidc-config", stdout={"id": "oidc-3"})

        asyncio.run(OidcConfigResolver(rosa, ocm, fedramp=True).resolve("demo", ""))

        assert "--managed=false" not in runner.calls[0]

    def test_installer_role_required_outside_fedramp(self, rosa, ocm):
        with pytest.raises(ValidationError, match="installer role arn is required"):
            asyncio.run(OidcConfigResolver(rosa, ocm, fedramp=False).resolve("demo", ""))

    def test_delete_provider_prefers_oidc_config_id(self, runner, rosa, ocm):
        resolver = OidcConfigResolver(rosa, ocm, fedramp=False)

        asyncio.run(resolver.delete_provider(cluster_id="c-1", oidc_config_id="oidc-1"))
        asyncio.run(resolver.delete_provider(cluster_id="c-1"))

        assert runner.calls == [
            ("rosa", "delete", "oidc-provider", "--mode", "auto", "--yes", "--oidc-config-id", "oidc-1"),
            ("rosa", "delete", "oidc-provider", "--mode", "auto", "--yes", "--cluster", "c-1"),
        ]

    def test_delete(self, runner, rosa, ocm):
        asyncio.run(OidcConfigResolver(rosa, ocm, fedramp=False).delete("oidc-1"))

        assert runner.calls == [
            ("rosa", "delete", "oidc-config", "--oidc-config-id", "oidc-1", "--mode", "auto", "--yes"),
        ]

    def test_delete_failure_is_raised(self, runner, rosa, ocm):
        runner.on("delete", "oidc-config", returncode=1, stderr="ERR: oidc config is in use")

        with pytest.raises(CommandError, match="oidc config is in use"):
            asyncio.run(OidcConfigResolver(rosa, ocm, fedramp=False).delete("oidc-1"))

    def test_delete_requires_id(self, runner, rosa, ocm):
        with pytest.raises(ValidationError):
            asyncio.run(OidcConfigResolver(rosa, ocm, fedramp=False).delete(""))

        assert runner.calls == []
