"""
PowerVS Restore - Clone Volumes Stage

Submits one bulk clone of all source volumes, waits for the clone task,
then maps each clone back to its source so the boot/data split carries over.
"""

from typing import Any, Dict, List, Tuple

from pvs_restore.core.client import first_present
from pvs_restore.core.exceptions import APIError, DataShapeError, SubmissionError
from pvs_restore.operations.base import BaseStage, StageResult
from pvs_restore.orchestration.state import RunState, Stage

SOURCE_KEYS = ('sourceVolume', 'sourceVolumeID', 'sourceVolumeId')
CLONE_KEYS = ('clonedVolume', 'clonedVolumeID', 'clonedVolumeId')
TASK_KEYS = ('cloneTaskID', 'cloneTaskId')


def extract_clone_task_id(reply: Dict[str, Any]) -> str:
    """Task id from a clone submission (top level or first cloned volume)."""
    task_id = first_present(reply, *TASK_KEYS)
    if not task_id:
        cloned = reply.get('clonedVolumes') if isinstance(reply, dict) else None
        if cloned:
            task_id = first_present(cloned[0], *TASK_KEYS)
    if not task_id:
        raise DataShapeError("Clone submission reply has no cloneTaskID", payload=reply)
    return task_id


def cloned_ids(task: Dict[str, Any]) -> List[str]:
    """Every clone id a task reply mentions, even in otherwise malformed records."""
    records = task.get('clonedVolumes') if isinstance(task, dict) else None
    ids = [first_present(record, *CLONE_KEYS) for record in records or []]
    return [clone_id for clone_id in ids if clone_id]


def clone_map(task: Dict[str, Any]) -> Dict[str, str]:
    """
    Map source volume id -> cloned volume id from a finished clone task.

    Raises:
        DataShapeError: On malformed or duplicate records
    """
    records = task.get('clonedVolumes') if isinstance(task, dict) else None
    if not records:
        raise DataShapeError("Clone task has no clonedVolumes", payload=task)

    mapping = {}
    for record in records:
        source = first_present(record, *SOURCE_KEYS)
        clone = first_present(record, *CLONE_KEYS)
        if not source or not clone:
            raise DataShapeError("Clone record lacks a source or clone id", payload=record)
        if source in mapping:
            raise DataShapeError(f"Source volume {source} cloned more than once", payload=task)
        mapping[source] = clone
    return mapping


def partition_clones(mapping: Dict[str, str], source_boot: str,
                     source_data: List[str]) -> Tuple[str, List[str]]:
    """
    Split clones into (boot_clone, data_clones) following the source split.

    Data clones keep the order of their source volumes.
    """
    boot_clone = mapping.get(source_boot, '')
    known = [mapping[source] for source in source_data if source in mapping]
    others = [clone for source, clone in mapping.items()
              if source != source_boot and source not in source_data]
    return boot_clone, known + others


class CloneVolumesStage(BaseStage):
    """
    Clones the snapshot volumes to the configured storage tier.
    """

    stage = Stage.CLONE_VOLUMES

    @property
    def name(self) -> str:
        """Display name for this stage."""
        return "Clone Volumes"

    def execute(self, state: RunState) -> StageResult:
        clone_name = state.run_name
        self._log_info("  Submitting clone request...")
        self._log_info(f"    Clone prefix: {clone_name}")
        self._log_info(f"    Storage tier: {self.config.storage_tier}")

        try:
            reply = self.client.clone_volumes(
                state.source_volume_ids, self.config.storage_tier, clone_name
            )
        except APIError as e:
            raise SubmissionError(self.name, str(e))

        task_id = extract_clone_task_id(reply)
        state.set_clone_task_id(task_id)
        self._log_info(f"  [OK] Clone request submitted (task {task_id})")

        self._poll(
            lambda: str(self.client.get_clone_task(task_id).get('status') or '').lower(),
            is_success=lambda s: s == 'completed',
            is_failure=lambda s: s == 'failed',
            description=f"Clone task {task_id}",
            max_elapsed=self.config.max_clone_wait,
        )

        task = self._read(lambda: self.client.get_clone_task(task_id), f"Clone task {task_id} result")
        state.observe_clones(cloned_ids(task))

        mapping = clone_map(task)
        boot_clone, data_clones = partition_clones(
            mapping, state.source_boot_id, state.source_data_ids
        )
        state.set_clones(boot_clone, data_clones)

        self._log_info("  [OK] Cloned volume IDs extracted")
        self._log_info(f"    Boot volume:  {boot_clone}")
        self._log_info(f"    Data volumes: {', '.join(data_clones) or 'None'}")

        return self._result(
            f"{len(mapping)} volume(s) cloned",
            cloneTaskId=task_id, bootVolume=boot_clone, dataVolumes=data_clones
        )
