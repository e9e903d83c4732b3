import asyncio
from pathlib import Path

import urllib3
from kubernetes.client import ApiException

from rosapilot.clients.kubernetes_client import KubernetesClient
from rosapilot.config import DEFAULT_POLL_INTERVAL
from rosapilot.core.poller import wait_for
from rosapilot.exceptions import InconsistentStateError, PollTimeoutError
from rosapilot.utils import setup_logger

OSD_CLUSTER_READY_JOB = 'osd-cluster-ready'
OSD_CLUSTER_READY_NAMESPACE = 'openshift-monitoring'

_API_TIMEOUTS = (TimeoutError, urllib3.exceptions.TimeoutError, urllib3.exceptions.MaxRetryError)


class ClusterHealthChecker:
    def __init__(self, client: KubernetesClient, interval: float = DEFAULT_POLL_INTERVAL) -> None:
        self._logger = setup_logger('ClusterHealth')

        self._client = client
        self._interval = interval

    async def wait_until_healthy(
            self, timeout: float, hosted_cp: bool, report_dir: Path, expected_nodes: int = 0
    ) -> None:
        if hosted_cp:
            await self._wait_for_nodes(timeout, expected_nodes)
        else:
            await self._wait_for_ready_job(timeout, report_dir)

    async def _wait_for_nodes(self, timeout: float, expected_nodes: int) -> None:
        self._logger.info(f'Waiting for hosted control plane cluster nodes to be ready, {timeout=}')

        async def nodes_ready() -> bool:
            try:
                readiness = await asyncio.to_thread(self._client.node_readiness)
            except _API_TIMEOUTS as e:
                self._logger.warning(f'Timeout contacting api server: {e}')
                return False

            self._logger.info(f'{readiness.ready}/{readiness.total} nodes ready, {expected_nodes=}')

            return readiness.all_ready and readiness.ready >= expected_nodes

        await wait_for(nodes_ready, timeout, self._interval, 'cluster nodes to be ready')

        self._logger.info('Hosted control plane cluster health check finished successfully!')

    async def _wait_for_ready_job(self, timeout: float, report_dir: Path) -> None:
        job_name = OSD_CLUSTER_READY_JOB
        namespace = OSD_CLUSTER_READY_NAMESPACE

        self._logger.info(f'Waiting for job {namespace}/{job_name} to finish, {timeout=}')

        async def job_completed() -> bool:
            try:
                state = await asyncio.to_thread(self._client.job_state, job_name, namespace)
            except ApiException as e:
                if e.status != 404:
                    raise
                self._logger.info(f'Job {namespace}/{job_name} does not exist yet')
                return False

            if state.failed:
                raise InconsistentStateError(f'job {namespace}/{job_name} failed, health checks did not pass')

            return state.succeeded

        try:
            await wait_for(job_completed, timeout, self._interval, f'job {namespace}/{job_name} to complete')
        except (PollTimeoutError, InconsistentStateError):
            await self._save_job_logs(job_name, namespace, report_dir)
            raise

        self._logger.info(f'Cluster job {job_name} finished successfully!')

    async def _save_job_logs(self, job_name: str, namespace: str, report_dir: Path) -> None:
        try:
            logs = await asyncio.to_thread(self._client.job_pod_logs, job_name, namespace)

            report_dir.mkdir(parents=True, exist_ok=True)
            log_file = report_dir / f'{job_name}.log'
            log_file.write_text(logs, encoding='utf-8')
        except (ApiException, ValueError, OSError) as e:
            self._logger.exception(f'Failed to collect logs of job {job_name}: {e}', exc_info=True)
            return

        self._logger.info(f'Job {job_name} logs written to {log_file}')
