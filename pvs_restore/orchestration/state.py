"""
PowerVS Restore - Run State

The mutable record of what a run has created or observed so far. The
stage sequencer is the only writer; the rollback coordinator reads it to
decide what to compensate.

Stages form a closed, strictly ordered list. Which resources may already
exist at failure time is a pure function of the current stage.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from pvs_restore.core.exceptions import DataShapeError


class Stage(Enum):
    """Stages of a run, in execution order."""

    INITIALIZATION = 'INITIALIZATION'
    AUTHENTICATE = 'AUTHENTICATE'
    CREATE_INSTANCE = 'CREATE_INSTANCE'
    WAIT_INSTANCE_STOPPED = 'WAIT_INSTANCE_STOPPED'
    CREATE_SNAPSHOT = 'CREATE_SNAPSHOT'
    WAIT_SNAPSHOT_AVAILABLE = 'WAIT_SNAPSHOT_AVAILABLE'
    EXTRACT_VOLUMES = 'EXTRACT_VOLUMES'
    CLONE_VOLUMES = 'CLONE_VOLUMES'
    VERIFY_VOLUMES_AVAILABLE = 'VERIFY_VOLUMES_AVAILABLE'
    ATTACH_VOLUMES = 'ATTACH_VOLUMES'
    BOOT_INSTANCE = 'BOOT_INSTANCE'


STAGE_ORDER = tuple(Stage)

# The only allowed transitions: each stage to the one after it
TRANSITIONS = {current: following for current, following in zip(STAGE_ORDER, STAGE_ORDER[1:])}

# First stage during which each kind of resource can come into existence
RESOURCE_STAGES = {
    'instance': Stage.CREATE_INSTANCE,
    'snapshot': Stage.CREATE_SNAPSHOT,
    'clones': Stage.CLONE_VOLUMES,
    'attachments': Stage.ATTACH_VOLUMES,
}


def stage_index(stage: Stage) -> int:
    """Position of a stage in the run order."""
    return STAGE_ORDER.index(stage)


def resources_possible(stage: Stage) -> FrozenSet[str]:
    """
    Kinds of resources that may exist once a run has reached ``stage``.

    Example:
        resources_possible(Stage.CREATE_SNAPSHOT)
        # frozenset({'instance', 'snapshot'})
    """
    reached = stage_index(stage)
    return frozenset(
        resource for resource, first_stage in RESOURCE_STAGES.items()
        if stage_index(first_stage) <= reached
    )


@dataclass
class StageRecord:
    """
    Outcome of one stage, kept for the run summary.
    """
    stage: Stage
    success: bool
    message: str
    error_kind: Optional[str] = None
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())


class RunState:
    """
    Everything a run has created or observed.

    Invariants enforced here:
    - current_stage only moves forward, one stage at a time
    - the secondary instance id, once set, is never reassigned
    - exactly one boot volume among source and cloned volumes
    - one clone per source data volume
    - success can only be set once the final stage is running

    Example:
        state = RunState.new('clone')
        state.advance(Stage.AUTHENTICATE)
        state.advance(Stage.CREATE_INSTANCE)
        state.set_instance_id('i-1')
    """

    def __init__(self, run_name: str):
        self.run_name = run_name
        self.current_stage = Stage.INITIALIZATION
        self.secondary_instance_id = ''
        self.snapshot_id = ''
        self.source_boot_id = ''
        self.source_data_ids: List[str] = []
        self.clone_task_id = ''
        self.clone_boot_id = ''
        self.clone_data_ids: List[str] = []
        self.observed_clone_ids: List[str] = []
        self.success = False
        self.history: List[StageRecord] = []
        self.started_at = datetime.now()

    @classmethod
    def new(cls, prefix: str, now: datetime = None) -> 'RunState':
        """Create an empty state with a timestamp-derived unique run name."""
        now = now or datetime.now()
        return cls(f"{prefix}-{now:%Y%m%d%H%M}")

    # ------------------------------------------------------------------
    # Stage progression
    # ------------------------------------------------------------------

    def advance(self, stage: Stage):
        """
        Move to the next stage.

        Raises:
            ValueError: If ``stage`` is not the direct successor
        """
        expected = TRANSITIONS.get(self.current_stage)
        if stage != expected:
            raise ValueError(
                f"Illegal stage transition {self.current_stage.value} -> {stage.value}"
            )
        self.current_stage = stage

    def reached(self, stage: Stage) -> bool:
        """True once the run has entered ``stage``."""
        return stage_index(self.current_stage) >= stage_index(stage)

    def may_exist(self, resource: str) -> bool:
        """True if a resource of this kind may exist at the current stage."""
        return resource in resources_possible(self.current_stage)

    def mark_success(self):
        """Record that the final stage completed."""
        if self.current_stage != STAGE_ORDER[-1]:
            raise ValueError(f"Cannot mark success during {self.current_stage.value}")
        self.success = True

    def record(self, stage: Stage, success: bool, message: str, error_kind: str = None):
        """Append a stage outcome to the history."""
        self.history.append(StageRecord(stage, success, message, error_kind))

    # ------------------------------------------------------------------
    # Resource identifiers
    # ------------------------------------------------------------------

    def set_instance_id(self, instance_id: str):
        if self.secondary_instance_id and self.secondary_instance_id != instance_id:
            raise ValueError(
                f"Secondary instance id already set to {self.secondary_instance_id}"
            )
        self.secondary_instance_id = instance_id

    def set_snapshot_id(self, snapshot_id: str):
        self.snapshot_id = snapshot_id

    def set_source_volumes(self, boot_id: str, data_ids: List[str]):
        if not boot_id:
            raise DataShapeError("Snapshot has no boot volume")
        self.source_boot_id = boot_id
        self.source_data_ids = list(data_ids)

    def set_clone_task_id(self, task_id: str):
        self.clone_task_id = task_id

    def observe_clones(self, clone_ids: List[str]):
        """
        Note clones the backend reported, before they are checked.

        Rollback deletes these even if set_clones later rejects the set.
        """
        for clone_id in clone_ids:
            if clone_id and clone_id not in self.observed_clone_ids:
                self.observed_clone_ids.append(clone_id)

    def set_clones(self, boot_id: str, data_ids: List[str]):
        """
        Record cloned volume ids.

        Raises:
            DataShapeError: If there is no boot clone or the data clone count
                does not match the source data volume count
        """
        if not boot_id:
            raise DataShapeError(
                f"No clone found for boot volume {self.source_boot_id}"
            )
        if len(data_ids) != len(self.source_data_ids):
            raise DataShapeError(
                f"Expected {len(self.source_data_ids)} data volume clone(s), "
                f"got {len(data_ids)}"
            )
        self.clone_boot_id = boot_id
        self.clone_data_ids = list(data_ids)

    @property
    def source_volume_ids(self) -> List[str]:
        """Boot volume first, then data volumes."""
        if not self.source_boot_id:
            return []
        return [self.source_boot_id] + self.source_data_ids

    @property
    def clone_volume_ids(self) -> List[str]:
        """Cloned boot volume first, then cloned data volumes."""
        if not self.clone_boot_id:
            return list(self.clone_data_ids)
        return [self.clone_boot_id] + self.clone_data_ids

    @property
    def created_clone_ids(self) -> List[str]:
        """Every clone this run may own: recorded ones, then any only observed."""
        recorded = self.clone_volume_ids
        return recorded + [i for i in self.observed_clone_ids if i not in recorded]

    @property
    def protected_ids(self) -> FrozenSet[str]:
        """Ids rollback must never delete."""
        return frozenset(i for i in (self.snapshot_id,) if i)

    def failed_record(self) -> Optional[StageRecord]:
        """The record of the failing stage, if any."""
        for record in reversed(self.history):
            if not record.success:
                return record
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Identifiers recorded so far (for summaries)."""
        return {
            'runName': self.run_name,
            'currentStage': self.current_stage.value,
            'secondaryInstanceId': self.secondary_instance_id or None,
            'snapshotId': self.snapshot_id or None,
            'sourceBootVolume': self.source_boot_id or None,
            'sourceDataVolumes': list(self.source_data_ids),
            'cloneTaskId': self.clone_task_id or None,
            'cloneBootVolume': self.clone_boot_id or None,
            'cloneDataVolumes': list(self.clone_data_ids),
            'success': self.success,
        }
