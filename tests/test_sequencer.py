"""End-to-end tests for the stage sequencer against the fake client."""

from unittest import mock

import pytest

from pvs_restore.core.exceptions import APIError
from pvs_restore.orchestration.sequencer import StageSequencer
from pvs_restore.validators import PrimaryInstanceValidator, SecondaryNameValidator

from conftest import not_found

ACTIVE_AFTER_BOOT = ({'status': 'SHUTOFF'}, {'status': 'SHUTOFF'}, {'status': 'ACTIVE'})


@pytest.fixture
def sequencer(client, config, sleep):
    return StageSequencer(client, config, sleep=sleep, validators=[])


def run_counting_rollbacks(sequencer):
    """Execute and return (outcome, number of rollbacks)."""
    coordinator = sequencer.coordinator
    with mock.patch.object(coordinator, 'rollback', wraps=coordinator.rollback) as rollback:
        outcome = sequencer.execute()
    return outcome, rollback.call_count


def test_full_run_succeeds_without_rollback(client, sequencer):
    client.script('get_instance', *ACTIVE_AFTER_BOOT)
    client.script('list_instance_volumes', ['c-boot', 'c-data'])

    outcome, rollbacks = run_counting_rollbacks(sequencer)

    assert outcome.success
    assert rollbacks == 0
    assert outcome.cleanup is None
    assert len(outcome.results) == 10
    summary = outcome.to_summary()
    assert summary['secondaryInstanceId'] == 'i-1'
    assert summary['snapshotId'] == 's-1'
    assert summary['cloneBootVolume'] == 'c-boot'
    assert summary['cloneDataVolumes'] == ['c-data']
    assert client.called('bulk_delete') == []


def test_snapshot_error_aborts_and_preserves_snapshot(client, sequencer):
    client.script('get_snapshot', {'status': 'error'})

    outcome, rollbacks = run_counting_rollbacks(sequencer)

    assert not outcome.success
    assert rollbacks == 1
    assert outcome.failed_stage == 'WAIT_SNAPSHOT_AVAILABLE'
    assert outcome.error_kind == 'terminal_failure'
    assert outcome.cleanup.preserved == ['s-1']
    assert outcome.to_summary()['preserved'] == ['s-1']
    assert client.called('clone_volumes') == []
    assert client.called('bulk_delete') == []


def test_clone_failure_leaves_nothing_to_delete(client, sequencer):
    client.script('get_clone_task', *[{'status': 'running'}] * 3, {'status': 'failed'})

    outcome, rollbacks = run_counting_rollbacks(sequencer)

    assert outcome.failed_stage == 'CLONE_VOLUMES'
    assert outcome.error_kind == 'terminal_failure'
    assert outcome.state['cloneBootVolume'] is None
    assert rollbacks == 1
    assert client.called('bulk_delete') == []
    assert client.called('attach_volumes') == []


def test_clone_count_mismatch_deletes_created_clones(client, sequencer):
    client.script('get_snapshot', {
        'status': 'available',
        'volumeSnapshots': [
            {'volumeID': 'v-boot', 'bootable': True},
            {'volumeID': 'v-d1', 'bootable': False},
            {'volumeID': 'v-d2', 'bootable': False},
        ],
    })
    client.script('get_clone_task', {
        'status': 'completed',
        'clonedVolumes': [
            {'sourceVolume': 'v-boot', 'clonedVolume': 'c-boot'},
            {'sourceVolume': 'v-d1', 'clonedVolume': 'c-d1'},
        ],
    })
    client.script('get_volume', not_found())

    outcome, rollbacks = run_counting_rollbacks(sequencer)

    assert outcome.failed_stage == 'CLONE_VOLUMES'
    assert outcome.error_kind == 'data_shape'
    assert rollbacks == 1
    assert client.called('bulk_delete') == [(['c-boot', 'c-d1'],)]
    assert outcome.cleanup.deleted == ['c-boot', 'c-d1']
    assert client.called('attach_volumes') == []


def test_attach_timeout_detaches_and_deletes_clones(client, sequencer):
    client.script('list_instance_volumes', *[['c-boot']] * 15, [])
    client.script('get_volume', {'state': 'available'}, {'state': 'available'}, not_found())

    outcome, rollbacks = run_counting_rollbacks(sequencer)

    assert outcome.failed_stage == 'ATTACH_VOLUMES'
    assert outcome.error_kind == 'timeout'
    assert '14 check(s)' in outcome.error_message
    assert rollbacks == 1

    names = [name for name, _ in client.calls]
    detach_at = names.index('bulk_detach')
    assert names[:detach_at].count('list_instance_volumes') == 14 + 1
    assert client.called('bulk_detach') == [('i-1',)]
    assert client.called('bulk_delete') == [(['c-boot', 'c-data'],)]
    assert outcome.cleanup.deleted == ['c-boot', 'c-data']
    assert client.called('start_instance') == []


def test_creation_failure_resolves_instance_by_name(client, sequencer):
    client.script('create_instance', APIError('POST', 'https://example', 400, 'quota exceeded'))

    outcome, rollbacks = run_counting_rollbacks(sequencer)

    assert outcome.failed_stage == 'CREATE_INSTANCE'
    assert outcome.error_kind == 'submission'
    assert rollbacks == 1
    assert client.called('find_instance_by_name') == [('restore-lpar',)]
    assert client.called('list_instance_volumes') == []
    assert client.called('create_snapshot') == []


def test_unexpected_error_rolls_back_and_propagates(client, sequencer):
    client.script('get_snapshot', RuntimeError('unexpected'))

    with pytest.raises(RuntimeError):
        sequencer.execute()

    assert sequencer.scope.report is not None
    assert sequencer.scope.report.preserved == ['s-1']
    assert sequencer.state.failed_record().error_kind == 'unexpected'
    assert client.called('clone_volumes') == []


def test_interrupt_rolls_back_and_propagates(client, sequencer):
    client.script('get_instance', KeyboardInterrupt())

    with pytest.raises(KeyboardInterrupt):
        sequencer.execute()

    assert sequencer.scope.report is not None
    assert sequencer.scope.report.instance_id == 'i-1'


def test_stage_history(client, sequencer):
    client.script('get_snapshot', {'status': 'error'})

    sequencer.execute()

    history = [(record.stage.value, record.success) for record in sequencer.state.history]
    assert history == [
        ('AUTHENTICATE', True),
        ('CREATE_INSTANCE', True),
        ('WAIT_INSTANCE_STOPPED', True),
        ('CREATE_SNAPSHOT', True),
        ('WAIT_SNAPSHOT_AVAILABLE', False),
    ]


def test_validation_passes(client, config, sleep):
    sequencer = StageSequencer(client, config, sleep=sleep)

    assert sequencer.validate()
    assert client.called('get_instance') == [('prod-lpar',)]


def test_validation_rejects_existing_secondary(client, config, sleep):
    client.script('find_instance_by_name', 'i-old')
    sequencer = StageSequencer(client, config, sleep=sleep, validators=[
        PrimaryInstanceValidator(client, config),
        SecondaryNameValidator(client, config),
    ])

    assert not sequencer.validate()


def test_validation_rejects_primary_in_error(client, config, sleep):
    client.script('get_instance', {'status': 'ERROR'})
    sequencer = StageSequencer(client, config, sleep=sleep, validators=[
        PrimaryInstanceValidator(client, config),
    ])

    assert not sequencer.validate()
