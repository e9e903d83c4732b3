import time
from datetime import datetime
from enum import StrEnum
from pathlib import Path
from typing import Any

import httpx

from rosapilot.config import FEDRAMP_TOKEN_URL, SSO_TOKEN_URL
from rosapilot.exceptions import ClusterNotFoundError, OcmApiError
from rosapilot.schemas import (
    ClusterRecord,
    GateAgreement,
    ItemList,
    OidcConfigRecord,
    UpgradePolicy,
    VersionGate,
    parse_object,
)
from rosapilot.utils import setup_logger, write_private_file

CLUSTERS_MGMT = '/api/clusters_mgmt/v1'
OFFLINE_TOKEN_CLIENT_ID = 'cloud-services'
PAGE_SIZE = 100


class OcmEnvironment(StrEnum):
    PRODUCTION = 'https://api.openshift.com'
    STAGE = 'https://api.stage.openshift.com'
    INTEGRATION = 'https://api.integration.openshift.com'
    FEDRAMP_PRODUCTION = 'https://api.openshiftusgov.com'
    FEDRAMP_STAGE = 'https://api.stage.openshiftusgov.com'
    FEDRAMP_INTEGRATION = 'https://api.int.openshiftusgov.com'

    @property
    def is_fedramp(self) -> bool:
        return 'openshiftusgov' in self.value

    @property
    def token_url(self) -> str:
        return FEDRAMP_TOKEN_URL if self.is_fedramp else SSO_TOKEN_URL


class OcmClient:
    """Read side of OpenShift Cluster Manager plus the few writes the upgrade flow needs."""

    def __init__(
            self,
            environment: OcmEnvironment,
            token: str = '',
            client_id: str = '',
            client_secret: str = '',
            http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not token and not (client_id and client_secret):
            raise ValueError('either an offline token or a client id and secret are required')

        self._logger = setup_logger('OcmClient')

        self.environment = environment
        self._token = token
        self._client_id = client_id
        self._client_secret = client_secret

        self._http = http_client or httpx.AsyncClient(base_url=str(environment), timeout=60)

        self._access_token: str | None = None
        self._access_token_expiry = 0.0

    async def close(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> 'OcmClient':
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _get_access_token(self) -> str:
        if self._access_token and time.monotonic() < self._access_token_expiry:
            return self._access_token

        if self._client_id and self._client_secret:
            data = {
                'grant_type': 'client_credentials',
                'client_id': self._client_id,
                'client_secret': self._client_secret,
            }
        else:
            data = {
                'grant_type': 'refresh_token',
                'client_id': OFFLINE_TOKEN_CLIENT_ID,
                'refresh_token': self._token,
            }

        try:
            response = await self._http.post(self.environment.token_url, data=data)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise OcmApiError('failed to obtain ocm access token', e.response.status_code, e.response.text) from e
        except httpx.HTTPError as e:
            raise OcmApiError(f'failed to obtain ocm access token: {e}') from e

        payload = response.json()

        self._access_token = payload['access_token']
        # refresh a little before the token actually expires
        self._access_token_expiry = time.monotonic() + float(payload.get('expires_in', 300)) - 30

        return self._access_token

    async def _request(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        headers = {'Authorization': f'Bearer {await self._get_access_token()}'}

        try:
            response = await self._http.request(method, f'{CLUSTERS_MGMT}{path}', headers=headers, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise OcmApiError(f'{method} {path} failed', e.response.status_code, e.response.text) from e
        except httpx.HTTPError as e:
            raise OcmApiError(f'{method} {path} failed: {e}') from e

        return response.json() if response.content else {}

    async def _list(self, path: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        items = []
        page = 1

        while True:
            payload = await self._request('GET', path, params={**(params or {}), 'page': page, 'size': PAGE_SIZE})
            listing = parse_object(ItemList, payload, f'GET {path}')

            items.extend(listing.items)

            if len(listing.items) < PAGE_SIZE:
                return items

            page += 1

    async def find_cluster(self, name_or_id: str) -> ClusterRecord:
        search = f"product.id = 'rosa' AND (name = '{name_or_id}' OR id = '{name_or_id}')"
        payload = await self._request('GET', '/clusters', params={'search': search, 'page': 1, 'size': 1})

        listing = parse_object(ItemList, payload, 'GET /clusters')
        if not listing.items:
            raise ClusterNotFoundError(name_or_id)

        return parse_object(ClusterRecord, listing.items[0], 'GET /clusters')

    async def get_cluster(self, cluster_id: str) -> ClusterRecord:
        payload = await self._request('GET', f'/clusters/{cluster_id}')
        return parse_object(ClusterRecord, payload, f'GET /clusters/{cluster_id}')

    async def list_oidc_configs(self) -> list[OidcConfigRecord]:
        items = await self._list('/oidc_configs')
        return parse_object(list[OidcConfigRecord], items, 'GET /oidc_configs')

    async def kubeconfig(self, cluster_id: str) -> str:
        payload = await self._request('GET', f'/clusters/{cluster_id}/credentials')

        kubeconfig = payload.get('kubeconfig')
        if not kubeconfig:
            raise OcmApiError(f'cluster {cluster_id} credentials do not contain a kubeconfig')

        return kubeconfig

    async def kubeconfig_file(self, cluster_id: str, directory: Path) -> Path:
        kubeconfig = await self.kubeconfig(cluster_id)

        path = write_private_file(directory / f'{cluster_id}-kubeconfig', kubeconfig)
        self._logger.info(f'Kubeconfig written to {path}, {cluster_id=}')

        return path

    async def list_version_gates(self) -> list[VersionGate]:
        items = await self._list('/version_gates')
        return parse_object(list[VersionGate], items, 'GET /version_gates')

    async def get_version_gate(self, gate_id: str) -> VersionGate:
        payload = await self._request('GET', f'/version_gates/{gate_id}')
        return parse_object(VersionGate, payload, f'GET /version_gates/{gate_id}')

    async def list_gate_agreements(self, cluster_id: str) -> list[GateAgreement]:
        items = await self._list(f'/clusters/{cluster_id}/gate_agreements')
        return parse_object(list[GateAgreement], items, f'GET /clusters/{cluster_id}/gate_agreements')

    async def add_gate_agreement(self, cluster_id: str, gate_id: str) -> GateAgreement:
        payload = await self._request(
            'POST', f'/clusters/{cluster_id}/gate_agreements', json={'version_gate': {'id': gate_id}}
        )
        return parse_object(GateAgreement, payload, f'POST /clusters/{cluster_id}/gate_agreements')

    async def add_upgrade_policy(
            self, cluster_id: str, version: str, next_run: datetime, hosted_cp: bool = False
    ) -> UpgradePolicy:
        if hosted_cp:
            path = f'/clusters/{cluster_id}/control_plane/upgrade_policies'
            upgrade_type = 'ControlPlane'
        else:
            path = f'/clusters/{cluster_id}/upgrade_policies'
            upgrade_type = 'OSD'

        body = {
            'version': version,
            'schedule_type': 'manual',
            'upgrade_type': upgrade_type,
            'next_run': next_run.strftime('%Y-%m-%dT%H:%M:%SZ'),
        }

        payload = await self._request('POST', path, json=body)
        return parse_object(UpgradePolicy, payload, f'POST {path}')
