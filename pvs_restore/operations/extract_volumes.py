"""
PowerVS Restore - Extract Volumes Stage

Reads the available snapshot and splits its volumes into exactly one
boot volume and zero or more data volumes.

The snapshot detail is not consistent about where volumes live:
- volumeSnapshots as a list of records
- volumeSnapshots as a mapping of id -> record
- volumeSnapshots as a mapping of id -> size
- a plain 'volumes' list
Records without a boot flag are looked up with get_volume.
"""

from typing import Any, Dict, List, Tuple

from pvs_restore.core.client import first_present
from pvs_restore.core.exceptions import DataShapeError
from pvs_restore.operations.base import BaseStage, StageResult
from pvs_restore.orchestration.state import RunState, Stage

ID_KEYS = ('volumeID', 'volumeId', 'id')


def _record(volume_id: str, source: Any) -> Dict[str, Any]:
    bootable = source.get('bootable') if isinstance(source, dict) else None
    return {'id': volume_id, 'bootable': bootable}


def parse_snapshot_volumes(snapshot: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Normalize the snapshot's volumes to [{'id': ..., 'bootable': True/False/None}].

    Raises:
        DataShapeError: If no volume can be found
    """
    raw = snapshot.get('volumeSnapshots') if isinstance(snapshot, dict) else None
    if raw is None and isinstance(snapshot, dict):
        raw = snapshot.get('volumes')

    volumes = []
    if isinstance(raw, list):
        for item in raw:
            volume_id = first_present(item, *ID_KEYS) if isinstance(item, dict) else item
            if volume_id:
                volumes.append(_record(volume_id, item))
    elif isinstance(raw, dict):
        for key, value in raw.items():
            volume_id = (first_present(value, *ID_KEYS) if isinstance(value, dict) else None) or key
            volumes.append(_record(volume_id, value))

    if not volumes:
        raise DataShapeError("No volumes found in snapshot", payload=snapshot)
    return volumes


def partition_volumes(volumes: List[Dict[str, Any]]) -> Tuple[str, List[str]]:
    """
    Split volumes into (boot_id, data_ids).

    Raises:
        DataShapeError: Unless exactly one volume is bootable
    """
    boot = [v['id'] for v in volumes if v['bootable'] is True]
    if len(boot) != 1:
        raise DataShapeError(
            f"Expected exactly one bootable volume in snapshot, found {len(boot)}",
            payload=volumes
        )
    data = [v['id'] for v in volumes if v['bootable'] is not True]
    return boot[0], data


class ExtractVolumesStage(BaseStage):
    """
    Identifies the snapshot's boot and data volumes.
    """

    stage = Stage.EXTRACT_VOLUMES

    @property
    def name(self) -> str:
        """Display name for this stage."""
        return "Extract Volumes"

    def _is_bootable(self, volume_id: str) -> bool:
        detail = self._read(lambda: self.client.get_volume(volume_id), f"Volume {volume_id}")
        return bool(detail.get('bootable'))

    def execute(self, state: RunState) -> StageResult:
        self._log_info("  Retrieving snapshot volume details...")
        snapshot = self._read(
            lambda: self.client.get_snapshot(state.snapshot_id), f"Snapshot {state.snapshot_id}"
        )

        volumes = parse_snapshot_volumes(snapshot)
        for volume in volumes:
            if volume['bootable'] is None:
                self._log_debug(f"No boot flag for {volume['id']}, checking volume detail")
                volume['bootable'] = self._is_bootable(volume['id'])

        boot_id, data_ids = partition_volumes(volumes)
        state.set_source_volumes(boot_id, data_ids)

        self._log_info(f"  [OK] Found {len(volumes)} volume(s) in snapshot")
        self._log_info(f"    Boot Volume:  {boot_id}")
        self._log_info(f"    Data Volumes: {', '.join(data_ids) or 'None'}")

        return self._result(
            f"1 boot and {len(data_ids)} data volume(s)",
            bootVolume=boot_id, dataVolumes=data_ids
        )
