import logging
from datetime import datetime, timedelta, timezone

from rosapilot.clients.ocm_client import OcmClient
from rosapilot.exceptions import RosaPilotError, UpgradeError
from rosapilot.providers.rosa.versions import parse_version
from rosapilot.schemas import UpgradePolicy
from rosapilot.utils import setup_logger

OCP_GATE_LABEL = 'api.openshift.com/gate-ocp'
UPGRADE_SCHEDULE_DELAY = timedelta(minutes=7)


def gate_agreement_required(current_version: str, upgrade_version: str) -> bool:
    """A version gate only guards moving to a newer major.minor; z-streams and downgrades need none."""
    current = parse_version(current_version)
    upgrade = parse_version(upgrade_version)

    return (upgrade.major, upgrade.minor) > (current.major, current.minor)


class UpgradeScheduler:
    def __init__(self, ocm: OcmClient, logger: logging.Logger | None = None) -> None:
        self._logger = logger or setup_logger('Upgrade')

        self._ocm = ocm

    async def _version_gate_id(self, upgrade_version: str) -> str:
        upgrade = parse_version(upgrade_version)
        prefix = f'{upgrade.major}.{upgrade.minor}'

        for gate in await self._ocm.list_version_gates():
            if gate.version_raw_id_prefix == prefix and gate.label == OCP_GATE_LABEL:
                return gate.id

        raise UpgradeError('find', f'no version gate found for {prefix}')

    async def add_gate_agreement(self, cluster_id: str, current_version: str, upgrade_version: str) -> None:
        if not gate_agreement_required(current_version, upgrade_version):
            self._logger.info(f'Gate agreement not required, {cluster_id=}, {current_version=}, {upgrade_version=}')
            return

        gate_id = await self._version_gate_id(upgrade_version)

        for agreement in await self._ocm.list_gate_agreements(cluster_id):
            if agreement.version_gate.id == gate_id:
                self._logger.info(f'Gate agreement already exists, {cluster_id=}, {gate_id=}')
                return

        await self._ocm.add_gate_agreement(cluster_id, gate_id)
        self._logger.info(f'Gate agreement added, {cluster_id=}, {gate_id=}')

    async def schedule_upgrade(
            self, cluster_id: str, current_version: str, upgrade_version: str, hosted_cp: bool = False
    ) -> UpgradePolicy:
        try:
            await self.add_gate_agreement(cluster_id, current_version, upgrade_version)

            next_run = datetime.now(timezone.utc) + UPGRADE_SCHEDULE_DELAY
            policy = await self._ocm.add_upgrade_policy(cluster_id, upgrade_version, next_run, hosted_cp=hosted_cp)
        except UpgradeError:
            raise
        except RosaPilotError as e:
            raise UpgradeError('schedule', e) from e

        self._logger.info(f'Upgrade to {upgrade_version} scheduled for {policy.next_run or next_run}, {cluster_id=}')

        return policy
