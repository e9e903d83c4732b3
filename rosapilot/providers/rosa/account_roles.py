import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, fields
from enum import StrEnum

from rosapilot.exceptions import CommandError, InconsistentStateError
from rosapilot.providers.rosa.rosa_cli import RosaCli
from rosapilot.schemas import AccountRoleRecord, parse_json
from rosapilot.utils import setup_logger

DEFAULT_ACCOUNT_ROLES_PREFIX = 'ManagedOpenShift'
HCP_ROLE_MARKER = '-HCP-ROSA-'
ROLE_NAME_SUFFIX = r'-(HCP-ROSA-)?(Installer|ControlPlane|Support|Worker)-Role'

BASE_ROLE_COUNT = 4
HCP_ROLE_COUNT = 3


class AccountRoleType(StrEnum):
    CONTROL_PLANE = 'Control plane'
    INSTALLER = 'Installer'
    SUPPORT = 'Support'
    WORKER = 'Worker'


_BASE_SLOTS = {
    AccountRoleType.CONTROL_PLANE: 'control_plane_role_arn',
    AccountRoleType.INSTALLER: 'installer_role_arn',
    AccountRoleType.SUPPORT: 'support_role_arn',
    AccountRoleType.WORKER: 'worker_role_arn',
}

_HCP_SLOTS = {
    AccountRoleType.INSTALLER: 'hcp_installer_role_arn',
    AccountRoleType.SUPPORT: 'hcp_support_role_arn',
    AccountRoleType.WORKER: 'hcp_worker_role_arn',
}


def is_account_role_of(prefix: str, role_name: str) -> bool:
    # "demo" must not pick up the roles of "demo-old"
    return re.fullmatch(re.escape(prefix) + ROLE_NAME_SUFFIX, role_name) is not None


def valid_role_counts(fedramp: bool, hosted_cp: bool) -> tuple[int, ...]:
    if fedramp:
        return (BASE_ROLE_COUNT,)

    if hosted_cp:
        return (BASE_ROLE_COUNT + HCP_ROLE_COUNT,)

    return BASE_ROLE_COUNT, BASE_ROLE_COUNT + HCP_ROLE_COUNT


@dataclass(frozen=True)
class AccountRoles:
    control_plane_role_arn: str = ''
    installer_role_arn: str = ''
    support_role_arn: str = ''
    worker_role_arn: str = ''
    hcp_installer_role_arn: str = ''
    hcp_support_role_arn: str = ''
    hcp_worker_role_arn: str = ''

    @classmethod
    def from_records(cls, records: list[AccountRoleRecord]) -> 'AccountRoles':
        slots: dict[str, str] = {}

        for record in records:
            try:
                role_type = AccountRoleType(record.role_type)
            except ValueError as e:
                raise InconsistentStateError(
                    f'account role {record.role_name} has unknown role type {record.role_type!r}'
                ) from e

            slot_map = _HCP_SLOTS if HCP_ROLE_MARKER in record.role_name else _BASE_SLOTS

            slot = slot_map.get(role_type)
            if slot is None:
                raise InconsistentStateError(f'account role {record.role_name} has no {role_type} slot')

            if slot in slots:
                raise InconsistentStateError(f'account role slot {slot} is claimed by more than one role')

            slots[slot] = record.role_arn

        return cls(**slots)

    @property
    def count(self) -> int:
        return sum(1 for slot in fields(self) if getattr(self, slot.name))

    @property
    def base_roles(self) -> tuple[str, str, str, str]:
        return self.control_plane_role_arn, self.installer_role_arn, self.support_role_arn, self.worker_role_arn

    @property
    def hcp_roles(self) -> tuple[str, str, str]:
        return self.hcp_installer_role_arn, self.hcp_support_role_arn, self.hcp_worker_role_arn

    def validate(self, fedramp: bool, hosted_cp: bool) -> None:
        expected = valid_role_counts(fedramp, hosted_cp)

        if self.count not in expected:
            raise InconsistentStateError(
                f'found {self.count} account roles, expected {" or ".join(map(str, expected))} '
                f'({fedramp=}, {hosted_cp=})'
            )

        if not all(self.base_roles):
            raise InconsistentStateError('account roles are missing one of the control plane/installer/support/worker roles')

        if self.count == BASE_ROLE_COUNT + HCP_ROLE_COUNT and not all(self.hcp_roles):
            raise InconsistentStateError('account roles are missing one of the hosted control plane roles')


class AccountRolesResolver:
    def __init__(self, rosa: RosaCli, fedramp: bool, logger: logging.Logger | None = None) -> None:
        self._logger = logger or setup_logger('AccountRoles')

        self._rosa = rosa
        self._fedramp = fedramp

    async def _list(self) -> list[AccountRoleRecord]:
        result = await self._rosa.run('list', 'account-roles', '--output', 'json')

        if not result.stdout.strip():
            return []

        return parse_json(list[AccountRoleRecord], result.stdout, 'rosa list account-roles')

    async def get(self, prefix: str, version: str) -> list[AccountRoleRecord]:
        return [
            record for record in await self._list()
            if is_account_role_of(prefix, record.role_name) and record.version == version
        ]

    async def create(self, prefix: str, version: str, channel_group: str, hosted_cp: bool) -> None:
        args = [
            'create', 'account-roles',
            '--prefix', prefix,
            '--version', version,
            '--channel-group', channel_group,
            '--mode', 'auto',
            '--yes',
        ]

        # the restricted partition tooling only knows the classic role set
        if not self._fedramp:
            args.append('--classic')
            if hosted_cp:
                args.append('--hosted-cp')

        self._logger.info(f'Creating account roles, {prefix=}, {version=}, {channel_group=}')
        await self._rosa.run(*args)

    async def resolve(
            self, prefix: str, version: str, channel_group: str, hosted_cp: bool,
            on_create: Callable[[], None] | None = None,
    ) -> AccountRoles:
        """
        Look up the roles for (prefix, version), creating the full set only when none exist.

        ``on_create`` is called as soon as the create call succeeds, before the new roles are validated.
        """
        records = await self.get(prefix, version)

        if not records:
            await self.create(prefix, version, channel_group, hosted_cp)
            if on_create is not None:
                on_create()
            records = await self.get(prefix, version)
        else:
            self._logger.info(f'Account roles already exist, {prefix=}, {version=}, count={len(records)}')

        roles = AccountRoles.from_records(records)
        roles.validate(self._fedramp, hosted_cp)

        return roles

    async def delete(self, prefix: str) -> None:
        self._logger.info(f'Deleting account roles, {prefix=}')

        try:
            await self._rosa.run('delete', 'account-roles', '--prefix', prefix, '--mode', 'auto', '--yes')
        except CommandError as e:
            output = f'{e.stdout} {e.stderr}'.lower()
            if 'no account roles' not in output and 'not found' not in output:
                raise

            self._logger.info(f'No account roles left to delete, {prefix=}')
            return

        self._logger.info(f'Account roles deleted, {prefix=}')
