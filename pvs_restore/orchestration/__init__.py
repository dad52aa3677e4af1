"""
PowerVS Restore - Orchestration Module

Run state, stage sequencing and rollback.

Submodules are imported directly (pvs_restore.orchestration.sequencer,
pvs_restore.orchestration.rollback, pvs_restore.orchestration.state);
stages depend on the state module, so nothing is imported here.
"""
