import logging

from rosapilot.exceptions import ValidationError
from rosapilot.providers.rosa.rosa_cli import RosaCli
from rosapilot.utils import setup_logger


class OperatorRoles:
    def __init__(self, rosa: RosaCli, logger: logging.Logger | None = None) -> None:
        self._logger = logger or setup_logger('OperatorRoles')

        self._rosa = rosa

    async def delete(self, cluster_id: str, prefix: str = '') -> None:
        """Delete by operator role prefix when given, otherwise by cluster id."""
        args = ['delete', 'operator-roles', '--mode', 'auto', '--yes']

        if prefix:
            args.extend(['--prefix', prefix])
        elif cluster_id:
            args.extend(['--cluster', cluster_id])
        else:
            raise ValidationError(
                'operator role parameters', ['either a cluster id or an operator role prefix is required']
            )

        self._logger.info(f'Deleting operator roles, {cluster_id=}, {prefix=}')
        await self._rosa.run(*args)
        self._logger.info(f'Operator roles deleted, {cluster_id=}')
