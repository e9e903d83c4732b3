import logging
from collections.abc import Callable

from rosapilot.clients.ocm_client import OcmClient
from rosapilot.exceptions import ValidationError
from rosapilot.providers.rosa.rosa_cli import RosaCli
from rosapilot.schemas import CreatedOidcConfig
from rosapilot.utils import setup_logger


class OidcConfigResolver:
    def __init__(self, rosa: RosaCli, ocm: OcmClient, fedramp: bool, logger: logging.Logger | None = None) -> None:
        self._logger = logger or setup_logger('OidcConfig')

        self._rosa = rosa
        self._ocm = ocm
        self._fedramp = fedramp

    async def lookup(self, prefix: str) -> str | None:
        for oidc_config in await self._ocm.list_oidc_configs():
            if prefix in oidc_config.secret_arn:
                return oidc_config.id

        return None

    async def create(self, prefix: str, installer_role_arn: str) -> str:
        args = ['create', 'oidc-config', '--output', 'json', '--mode', 'auto', '--yes']

        # the restricted partition only supports managed oidc configs
        if not self._fedramp:
            args.extend(['--managed=false', '--prefix', prefix, '--installer-role-arn', installer_role_arn])

        self._logger.info(f'Creating oidc config, {prefix=}, fedramp={self._fedramp}')
        created = await self._rosa.run_json(CreatedOidcConfig, *args)
        self._logger.info(f'Oidc config created, {prefix=}, oidc_config_id={created.id}')

        return created.id

    async def resolve(
            self, prefix: str, installer_role_arn: str, on_create: Callable[[str], None] | None = None
    ) -> str:
        if not prefix:
            raise ValidationError('oidc config parameters', ['prefix is required'])

        if not installer_role_arn and not self._fedramp:
            raise ValidationError(
                'oidc config parameters', ['installer role arn is required to create an unmanaged oidc config']
            )

        oidc_config_id = await self.lookup(prefix)
        if oidc_config_id:
            self._logger.info(f'Oidc config already exists, {prefix=}, {oidc_config_id=}')
            return oidc_config_id

        oidc_config_id = await self.create(prefix, installer_role_arn)
        if on_create is not None:
            on_create(oidc_config_id)

        return oidc_config_id

    async def delete(self, oidc_config_id: str) -> None:
        if not oidc_config_id:
            raise ValidationError('oidc config parameters', ['oidc config id is required'])

        self._logger.info(f'Deleting oidc config, {oidc_config_id=}')
        await self._rosa.run('delete', 'oidc-config', '--oidc-config-id', oidc_config_id, '--mode', 'auto', '--yes')
        self._logger.info(f'Oidc config deleted, {oidc_config_id=}')

    async def delete_provider(self, cluster_id: str = '', oidc_config_id: str = '') -> None:
        args = ['delete', 'oidc-provider', '--mode', 'auto', '--yes']

        if oidc_config_id:
            args.extend(['--oidc-config-id', oidc_config_id])
        elif cluster_id:
            args.extend(['--cluster', cluster_id])
        else:
            raise ValidationError('oidc provider parameters', ['either a cluster id or an oidc config id is required'])

        self._logger.info(f'Deleting oidc provider, {cluster_id=}, {oidc_config_id=}')
        await self._rosa.run(*args)
