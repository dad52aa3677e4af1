"""
PowerVS Restore - Control-Plane Client

Thin REST client for the Power Virtual Server (pcloud) API.

Every method maps to one control-plane call. Errors are reported as:
- TransportError: no HTTP reply at all
- ResourceNotFoundError: HTTP 404
- APIError: any other non-2xx reply
- DataShapeError: a 2xx reply whose body is not JSON

Usage:
    auth = IAMAuthenticator(config.api_key)
    client = PowerVSClient(config, auth, logger=logger)
    instance = client.get_instance('i-1')
    print(instance['status'])
"""

import json
from typing import Any, Dict, List, Optional

import httplib2

from pvs_restore.core.config import JobConfig, VERSION
from pvs_restore.core.exceptions import (
    APIError,
    DataShapeError,
    ResourceNotFoundError,
    TransportError,
)
from pvs_restore.utils.logger import log_api_call, log_api_response


def first_present(record: Dict[str, Any], *keys: str):
    """Return the first non-empty value among ``keys`` (None if none)."""
    if not isinstance(record, dict):
        return None
    for key in keys:
        value = record.get(key)
        if value not in (None, '', 'null'):
            return value
    return None


class PowerVSClient:
    """
    Client for one PowerVS workspace.

    The client is stateless apart from the authenticator's token cache;
    read calls are safe to repeat.
    """

    def __init__(self, config: JobConfig, authenticator, http=None, logger=None):
        """
        Initialize the client.

        Args:
            config: Job configuration (region, CRN, workspace id)
            authenticator: Object with get_token() and invalidate()
            http: Optional httplib2.Http (one is created if not given)
            logger: Optional logger for debug output
        """
        self.config = config
        self.authenticator = authenticator
        self.http = http or httplib2.Http(timeout=config.request_timeout)
        self.logger = logger

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _url(self, path: str, version: str = 'v1') -> str:
        return (f"{self.config.api_root}/{version}/cloud-instances/"
                f"{self.config.cloud_instance_id}{path}")

    def _headers(self) -> Dict[str, str]:
        return {
            'Authorization': f'Bearer {self.authenticator.get_token()}',
            'CRN': self.config.crn,
            'Content-Type': 'application/json',
            'Accept': 'application/json',
            'User-Agent': f'pvs-restore/{VERSION}',
        }

    def _request(self, method: str, path: str, body: Any = None,
                 version: str = 'v1', _retry_auth: bool = True):
        """
        Issue one request and decode the JSON reply.

        A 401 is retried once with a fresh token.
        """
        url = self._url(path, version)
        payload = json.dumps(body) if body is not None else None
        log_api_call(self.logger, method, url, body)

        try:
            response, content = self.http.request(
                url, method=method, body=payload, headers=self._headers()
            )
        except (httplib2.HttpLib2Error, OSError) as e:
            raise TransportError(method, url, str(e))

        text = content.decode('utf-8', 'replace') if isinstance(content, bytes) else (content or '')
        log_api_response(self.logger, text)

        if response.status == 401 and _retry_auth:
            self.authenticator.invalidate()
            return self._request(method, path, body, version, _retry_auth=False)

        if response.status == 404:
            raise ResourceNotFoundError(method, url, response.status, text)

        if not 200 <= response.status < 300:
            raise APIError(method, url, response.status, text)

        if not text.strip():
            return {}

        try:
            return json.loads(text)
        except ValueError:
            raise DataShapeError(f"{method} {url} returned a non-JSON body", payload=text)

    # ------------------------------------------------------------------
    # Workspace / instances
    # ------------------------------------------------------------------

    def get_workspace(self) -> Dict[str, Any]:
        """Get the workspace (cloud instance) details."""
        return self._request('GET', '')

    def create_instance(self, spec: Dict[str, Any]):
        """
        Submit an instance-creation request.

        Returns the raw reply; its shape varies (object, list, or nested).
        """
        path = f'/pvm-instances?version={self.config.api_version}'
        return self._request('POST', path, spec)

    def get_instance(self, instance_id: str) -> Dict[str, Any]:
        """Get instance details (including 'status')."""
        return self._request('GET', f'/pvm-instances/{instance_id}')

    def list_instances(self) -> List[Dict[str, Any]]:
        """List all instances in the workspace."""
        reply = self._request('GET', '/pvm-instances')
        instances = reply.get('pvmInstances') if isinstance(reply, dict) else None
        return instances or []

    def find_instance_by_name(self, name: str) -> Optional[str]:
        """
        Resolve an instance id from its name.

        Returns:
            Instance id of the first match, or None
        """
        for instance in self.list_instances():
            if first_present(instance, 'serverName', 'name') == name:
                return first_present(instance, 'pvmInstanceID', 'id')
        return None

    def configure_boot_mode(self, instance_id: str, boot_mode: str = 'a',
                            operating_mode: str = 'normal') -> Dict[str, Any]:
        """Set the IBM i boot mode for the next start."""
        body = {
            'operationType': 'boot',
            'operation': {'bootmode': boot_mode, 'operatingMode': operating_mode},
        }
        return self._request('PUT', f'/pvm-instances/{instance_id}/operations', body)

    def start_instance(self, instance_id: str) -> Dict[str, Any]:
        """Issue a start action."""
        return self._request('POST', f'/pvm-instances/{instance_id}/action', {'action': 'start'})

    def delete_instance(self, instance_id: str) -> Dict[str, Any]:
        """Delete an instance."""
        return self._request('DELETE', f'/pvm-instances/{instance_id}')

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def create_snapshot(self, instance: str, name: str) -> Dict[str, Any]:
        """Snapshot an instance (id or name). Reply carries 'snapshotID'."""
        return self._request('POST', f'/pvm-instances/{instance}/snapshots', {'name': name})

    def get_snapshot(self, snapshot_id: str) -> Dict[str, Any]:
        """Get snapshot details (including 'status' and 'volumeSnapshots')."""
        return self._request('GET', f'/snapshots/{snapshot_id}')

    # ------------------------------------------------------------------
    # Volumes
    # ------------------------------------------------------------------

    def clone_volumes(self, volume_ids: List[str], target_tier: str, name: str) -> Dict[str, Any]:
        """Submit an asynchronous bulk-clone request."""
        body = {
            'name': name,
            'volumeIDs': list(volume_ids),
            'targetStorageTier': target_tier,
        }
        return self._request('POST', '/volumes/clone-async', body, version='v2')

    def get_clone_task(self, task_id: str) -> Dict[str, Any]:
        """Get clone task status and, once done, the cloned volume records."""
        return self._request('GET', f'/volumes/clone-tasks/{task_id}', version='v2')

    def get_volume(self, volume_id: str) -> Dict[str, Any]:
        """Get volume details (including 'state' and 'bootable')."""
        return self._request('GET', f'/volumes/{volume_id}')

    def attach_volumes(self, instance_id: str, boot_id: str,
                       data_ids: List[str] = None) -> Dict[str, Any]:
        """Attach a boot volume and optional data volumes in one request."""
        body = {'bootVolumeID': boot_id, 'volumeIDs': [boot_id] + list(data_ids or [])}
        return self._request('POST', f'/pvm-instances/{instance_id}/volumes', body, version='v2')

    def list_instance_volumes(self, instance_id: str) -> List[str]:
        """Ids of the volumes currently attached to an instance."""
        reply = self._request('GET', f'/pvm-instances/{instance_id}/volumes')
        volumes = (reply.get('volumes') if isinstance(reply, dict) else None) or []
        ids = [first_present(volume, 'volumeID', 'volumeId') for volume in volumes]
        return [volume_id for volume_id in ids if volume_id]

    def bulk_detach(self, instance_id: str) -> Dict[str, Any]:
        """Detach every volume, including the primary boot volume."""
        body = {'detachAllVolumes': True, 'detachPrimaryBootVolume': True}
        return self._request('POST', f'/pvm-instances/{instance_id}/volumes/remove',
                             body, version='v2')

    def bulk_delete(self, volume_ids: List[str]) -> Dict[str, Any]:
        """Delete several volumes in one request."""
        return self._request('DELETE', '/volumes', {'volumeIDs': list(volume_ids)}, version='v2')
