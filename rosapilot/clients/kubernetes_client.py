from dataclasses import dataclass
from pathlib import Path

from kubernetes import client, config
from kubernetes.client import ApiException

from rosapilot.utils import setup_logger


class KubernetesClients:
    def __init__(self, api_client: client.ApiClient):
        self.api = api_client
        self.core = client.CoreV1Api(api_client)  # Nodes, Pods
        self.batch = client.BatchV1Api(api_client)  # Jobs


@dataclass(frozen=True)
class NodeReadiness:
    total: int
    ready: int

    @property
    def all_ready(self) -> bool:
        return self.total > 0 and self.ready == self.total


@dataclass(frozen=True)
class JobState:
    succeeded: bool
    failed: bool


class KubernetesClient:
    def __init__(self, kubeconfig_path: Path, clients: KubernetesClients | None = None):
        self._logger = setup_logger('KubernetesClient')

        if clients is None:
            # a dedicated api client per cluster, the global default config is never touched
            clients = KubernetesClients(config.new_client_from_config(config_file=str(kubeconfig_path)))

        self._clients = clients

    def node_readiness(self) -> NodeReadiness:
        nodes = self._clients.core.list_node().items

        ready = 0
        for node in nodes:
            conditions = (node.status.conditions or []) if node.status else []
            if any(c.type == 'Ready' and c.status == 'True' for c in conditions):
                ready += 1

        return NodeReadiness(total=len(nodes), ready=ready)

    def job_state(self, job_name: str, namespace: str) -> JobState:
        job = self._clients.batch.read_namespaced_job(job_name, namespace)

        conditions = (job.status.conditions or []) if job.status else []
        completed = {c.type for c in conditions if c.status == 'True'}

        return JobState(succeeded='Complete' in completed, failed='Failed' in completed)

    def job_pod_logs(self, job_name: str, namespace: str) -> str:
        pods = self._clients.core.list_namespaced_pod(namespace, label_selector=f'job-name={job_name}').items

        if len(pods) != 1:
            raise ValueError(f'expected one pod for job {job_name}, found {len(pods)}')

        pod_name = pods[0].metadata.name
        self._logger.info(f'Collecting logs of pod {namespace}/{pod_name}')

        try:
            return self._clients.core.read_namespaced_pod_log(pod_name, namespace)
        except ApiException as e:
            raise ValueError(f"Error retrieving logs of pod '{pod_name}': {e}") from e
