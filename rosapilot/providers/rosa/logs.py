import logging
from enum import StrEnum
from pathlib import Path

from rosapilot.providers.rosa.rosa_cli import RosaCli
from rosapilot.utils import setup_logger


class ClusterLogType(StrEnum):
    INSTALL = 'install'
    UNINSTALL = 'uninstall'


class ClusterLogs:
    def __init__(self, rosa: RosaCli, logger: logging.Logger | None = None) -> None:
        self._logger = logger or setup_logger('ClusterLogs')

        self._rosa = rosa

    async def collect(self, log_type: ClusterLogType | str, cluster_name: str, report_dir: Path) -> Path:
        log_type = ClusterLogType(log_type)

        result = await self._rosa.run('logs', str(log_type), '--cluster', cluster_name)

        report_dir.mkdir(parents=True, exist_ok=True)
        log_file = report_dir / f'{cluster_name}-{log_type}.log'
        log_file.write_text(result.stdout, encoding='utf-8')

        self._logger.info(f'Cluster {log_type} log written to {log_file}, {cluster_name=}')

        return log_file
