"""
PowerVS Restore - Main Entry Point

Simple, clean entry point for one provision/snapshot/clone/restore run.

Usage:
    from pvs_restore.core.config import load_config
    from pvs_restore.main import run_restore_job

    outcome = run_restore_job(load_config())
    print(outcome.to_summary())
"""

import time

from pvs_restore.core.auth import IAMAuthenticator
from pvs_restore.core.client import PowerVSClient
from pvs_restore.core.code_engine import CodeEngineClient
from pvs_restore.core.config import JobConfig
from pvs_restore.core.exceptions import PVSRestoreError
from pvs_restore.orchestration.sequencer import JobOutcome, StageSequencer
from pvs_restore.orchestration.state import Stage
from pvs_restore.utils.logger import print_header, setup_logging


def trigger_cleanup_job(config: JobConfig, authenticator, logger, ce_client=None):
    """
    Submit the follow-on Code Engine cleanup job.

    Fire and forget: a failure here is logged and does not change the
    outcome of the run.

    Returns:
        Job run name, or None if submission failed
    """
    ce_client = ce_client or CodeEngineClient(
        config.region, authenticator, logger=logger, timeout=config.request_timeout
    )
    logger.info(f"  Submitting Code Engine job: {config.ce_job} (project {config.ce_project})...")
    try:
        run_name = ce_client.submit_job_run(config.ce_project, config.ce_job)
    except PVSRestoreError as e:
        logger.warning(f"Failed to submit cleanup job {config.ce_job}: {e}")
        logger.warning("Snapshot and volumes will remain until manual cleanup")
        return None

    logger.info(f"  [OK] Cleanup job triggered: {run_name}")
    return run_name


def _log_outcome(logger, config: JobConfig, outcome: JobOutcome):
    logger.info("")
    if outcome.success:
        print_header(logger, "[OK] Restore completed successfully!")
        logger.info(f"  Secondary instance: {config.secondary_name} ({outcome.state['secondaryInstanceId']})")
        logger.info(f"  Snapshot:           {outcome.state['snapshotId']}")
        logger.info(f"  Boot volume:        {outcome.state['cloneBootVolume']}")
        logger.info(f"  Data volumes:       {', '.join(outcome.state['cloneDataVolumes']) or 'None'}")
        logger.info(f"  Duration:           {outcome.duration_seconds:.0f}s")
        return

    print_header(logger, "[X] Restore failed")
    logger.error(f"Failed stage: {outcome.failed_stage} ({outcome.error_kind})")
    logger.error(f"  {outcome.error_message}")
    if outcome.cleanup:
        for volume_id in outcome.cleanup.manual_review:
            logger.critical(f"Manual review required: {volume_id}")


def run_restore_job(config: JobConfig, debug: bool = False, logger=None,
                    client=None, sleep=time.sleep) -> JobOutcome:
    """
    Run one restore job.

    This will:
    1. Validate credentials, the primary instance and the secondary name
    2. Create the secondary instance (no storage)
    3. Snapshot the primary instance
    4. Clone the snapshot volumes
    5. Attach the clones to the secondary instance and boot it
    6. Optionally trigger the cleanup job

    On failure, rolls back what the run created (the snapshot is kept).

    Args:
        config: Job configuration (see core.config.load_config)
        debug: Enable debug logging (default: False)
        logger: Existing logger (set up from config if not given)
        client: Existing PowerVS client (built from config if not given)
        sleep: Sleep function used by every wait

    Returns:
        JobOutcome describing the run
    """
    if logger is None:
        logger = setup_logging(level=config.log_level, log_file=config.log_file, debug=debug)

    print_header(logger, "PowerVS Restore - Provision, Snapshot, Clone & Boot")
    logger.info(f"Region:             {config.region}")
    logger.info(f"Workspace:          {config.cloud_instance_id}")
    logger.info(f"Primary instance:   {config.primary_instance}")
    logger.info(f"Secondary instance: {config.secondary_name}")
    logger.info(f"Storage tier:       {config.storage_tier}")
    logger.info("")

    if client is None:
        authenticator = IAMAuthenticator(config.api_key, timeout=config.request_timeout)
        client = PowerVSClient(config, authenticator, logger=logger)

    sequencer = StageSequencer(client, config, logger, sleep=sleep)

    if not config.skip_validation and not sequencer.validate():
        logger.error("")
        logger.error("Validation failed. Cannot proceed with restore.")
        return JobOutcome(
            success=False,
            run_name='',
            state={},
            failed_stage=Stage.INITIALIZATION.value,
            error_kind='validation',
            error_message='Pre-flight validation failed',
        )

    outcome = sequencer.execute()
    _log_outcome(logger, config, outcome)

    if outcome.success and config.run_cleanup_job:
        logger.info("")
        outcome.cleanup_job_run = trigger_cleanup_job(config, client.authenticator, logger)

    return outcome
