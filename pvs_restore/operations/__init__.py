"""
PowerVS Restore - Operations Module

This module provides the stages of a restore run.
Each stage does ONE thing and records what it created in the run state.
Stages never undo themselves; see orchestration.rollback.

Usage:
    from pvs_restore.operations import CreateSnapshotStage
    from pvs_restore.orchestration.state import RunState, Stage

    state = RunState.new(config.name_prefix)
    stage = CreateSnapshotStage(client, config, logger)
    result = stage.execute(state)
    print(result)             # [OK] Create Snapshot: Snapshot s-1 requested
    print(state.snapshot_id)  # s-1
"""

from pvs_restore.operations.base import BaseStage, StageResult
from pvs_restore.operations.poller import poll_until
from pvs_restore.operations.authenticate import AuthenticateStage
from pvs_restore.operations.create_instance import CreateInstanceStage
from pvs_restore.operations.wait_instance import WaitInstanceStoppedStage
from pvs_restore.operations.snapshot import CreateSnapshotStage, WaitSnapshotAvailableStage
from pvs_restore.operations.extract_volumes import ExtractVolumesStage
from pvs_restore.operations.clone_volumes import CloneVolumesStage
from pvs_restore.operations.verify_volumes import VerifyVolumesAvailableStage
from pvs_restore.operations.attach_volumes import AttachVolumesStage
from pvs_restore.operations.boot_instance import BootInstanceStage

# Execution order
STAGE_CLASSES = [
    AuthenticateStage,
    CreateInstanceStage,
    WaitInstanceStoppedStage,
    CreateSnapshotStage,
    WaitSnapshotAvailableStage,
    ExtractVolumesStage,
    CloneVolumesStage,
    VerifyVolumesAvailableStage,
    AttachVolumesStage,
    BootInstanceStage,
]

__all__ = [
    # Base classes
    'BaseStage',
    'StageResult',
    'poll_until',

    # Stages
    'AuthenticateStage',
    'CreateInstanceStage',
    'WaitInstanceStoppedStage',
    'CreateSnapshotStage',
    'WaitSnapshotAvailableStage',
    'ExtractVolumesStage',
    'CloneVolumesStage',
    'VerifyVolumesAvailableStage',
    'AttachVolumesStage',
    'BootInstanceStage',
    'STAGE_CLASSES',
]
