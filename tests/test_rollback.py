"""Tests for the rollback coordinator and the compensation scope."""

from dataclasses import replace

import pytest

from pvs_restore.core.exceptions import APIError
from pvs_restore.orchestration.rollback import CompensationScope, RollbackCoordinator
from pvs_restore.orchestration.state import Stage

from conftest import not_found
from helpers import state_at

SOURCE = ('v-boot', ['v-data'])
CLONES = ('c-boot', ['c-data'])


@pytest.fixture
def coordinator(client, config, sleep):
    return RollbackCoordinator(client, config, sleep=sleep)


def deleted_ids(client):
    return [volume_id for args in client.called('bulk_delete') for volume_id in args[0]]


def test_snapshot_is_preserved_never_deleted(client, coordinator):
    client.script('list_instance_volumes', ['c-boot', 'c-data'], [])
    client.script('get_volume', not_found())
    state = state_at(Stage.BOOT_INSTANCE, instance='i-1', snapshot='s-1',
                     source=SOURCE, clones=CLONES)

    report = coordinator.rollback(state)

    assert report.preserved == ['s-1']
    assert 's-1' not in deleted_ids(client)
    assert all('s-1' not in args for _, args in client.calls)


def test_detach_then_delete_then_verify(client, coordinator, sleeps):
    client.script('list_instance_volumes', ['c-boot', 'c-data'], ['c-data'], [])
    client.script('get_volume', not_found('c-boot'), not_found('c-data'))
    state = state_at(Stage.ATTACH_VOLUMES, instance='i-1', snapshot='s-1',
                     source=SOURCE, clones=CLONES)

    report = coordinator.rollback(state)

    order = [name for name, _ in client.calls if name in ('bulk_detach', 'bulk_delete', 'get_volume')]
    assert order == ['bulk_detach', 'bulk_delete', 'get_volume', 'get_volume']
    assert client.called('bulk_detach') == [('i-1',)]
    assert deleted_ids(client) == ['c-boot', 'c-data']
    assert report.detached == ['c-boot', 'c-data']
    assert report.deleted == ['c-boot', 'c-data']
    assert report.manual_review == []
    assert report.clean
    # detach: initial wait, one retry; then the deletion verify delay
    assert sleeps == [30, 30, 5]


def test_unresolved_instance_skips_detach(client, coordinator):
    state = state_at(Stage.CREATE_INSTANCE)

    report = coordinator.rollback(state)

    assert client.called('find_instance_by_name') == [('restore-lpar',)]
    assert client.called('list_instance_volumes') == []
    assert client.called('bulk_detach') == []
    assert client.called('bulk_delete') == []
    assert report.instance_id is None
    assert report.clean


def test_instance_resolved_by_name(client, coordinator):
    client.script('find_instance_by_name', 'i-7')
    state = state_at(Stage.CREATE_INSTANCE)

    report = coordinator.rollback(state)

    assert report.instance_id == 'i-7'
    assert client.called('list_instance_volumes') == [('i-7',)]
    assert client.called('bulk_detach') == []


def test_nothing_to_resolve_before_creation(client, coordinator):
    coordinator.rollback(state_at(Stage.AUTHENTICATE))

    assert client.calls == []


def test_no_attached_volumes_skips_detach(client, coordinator):
    client.script('get_volume', not_found())
    state = state_at(Stage.ATTACH_VOLUMES, instance='i-1', snapshot='s-1',
                     source=SOURCE, clones=CLONES)

    coordinator.rollback(state)

    assert client.called('bulk_detach') == []
    assert deleted_ids(client) == ['c-boot', 'c-data']


def test_detach_timeout_still_deletes(client, coordinator):
    client.script('list_instance_volumes', ['c-boot'])
    client.script('get_volume', not_found())
    state = state_at(Stage.BOOT_INSTANCE, instance='i-1', source=SOURCE, clones=CLONES)

    report = coordinator.rollback(state)

    # one listing before detach, then 240s / 30s checks
    assert len(client.called('list_instance_volumes')) == 1 + 8
    assert deleted_ids(client) == ['c-boot', 'c-data']
    assert len(report.warnings) == 1


def test_surviving_volume_needs_manual_review(client, coordinator):
    client.script('get_volume', not_found('c-boot'), {'state': 'deleting'})
    state = state_at(Stage.VERIFY_VOLUMES_AVAILABLE, instance='i-1', source=SOURCE, clones=CLONES)

    report = coordinator.rollback(state)

    assert report.deleted == ['c-boot']
    assert report.manual_review == ['c-data']
    assert not report.clean


def test_step_failures_do_not_stop_rollback(client, coordinator):
    error = APIError('DELETE', 'https://example/volumes', 500, 'internal')
    client.script('list_instance_volumes', error)
    client.script('bulk_delete', error)
    client.script('get_volume', error)
    state = state_at(Stage.BOOT_INSTANCE, instance='i-1', snapshot='s-1',
                     source=SOURCE, clones=CLONES)

    report = coordinator.rollback(state)

    assert len(client.called('get_volume')) == 2
    assert report.manual_review == ['c-boot', 'c-data']
    assert len(report.warnings) == 4


def test_clone_failure_has_nothing_to_delete(client, coordinator):
    state = state_at(Stage.CLONE_VOLUMES, instance='i-1', snapshot='s-1', source=SOURCE)

    report = coordinator.rollback(state)

    assert client.called('bulk_delete') == []
    assert client.called('get_volume') == []
    assert report.preserved == ['s-1']


def test_detach_does_not_depend_on_stage(client, coordinator):
    client.script('list_instance_volumes', ['v-extra'], [])
    state = state_at(Stage.WAIT_INSTANCE_STOPPED, instance='i-1')

    report = coordinator.rollback(state)

    assert client.called('bulk_detach') == [('i-1',)]
    assert report.detached == ['v-extra']
    assert client.called('bulk_delete') == []


def test_observed_clones_are_deleted(client, coordinator):
    client.script('get_volume', not_found())
    state = state_at(Stage.CLONE_VOLUMES, instance='i-1', snapshot='s-1', source=SOURCE)
    state.observe_clones(['c-boot', 's-1'])

    report = coordinator.rollback(state)

    assert deleted_ids(client) == ['c-boot']
    assert report.deleted == ['c-boot']
    assert report.preserved == ['s-1']


def test_instance_deleted_only_when_enabled(client, config, sleep):
    state = state_at(Stage.WAIT_INSTANCE_STOPPED, instance='i-1')

    RollbackCoordinator(client, config, sleep=sleep).rollback(state)
    assert client.called('delete_instance') == []

    enabled = replace(config, delete_instance_on_rollback=True)
    report = RollbackCoordinator(client, enabled, sleep=sleep).rollback(state)
    assert client.called('delete_instance') == [('i-1',)]
    assert report.instance_deleted


def test_scope_compensates_on_failure(client, coordinator):
    state = state_at(Stage.CREATE_INSTANCE)

    with pytest.raises(RuntimeError):
        with CompensationScope(state, coordinator) as scope:
            raise RuntimeError('boom')

    assert scope.report is not None
    assert client.called('find_instance_by_name') == [('restore-lpar',)]


def test_scope_compensates_on_interrupt(client, coordinator):
    state = state_at(Stage.CREATE_INSTANCE)

    with pytest.raises(KeyboardInterrupt):
        with CompensationScope(state, coordinator) as scope:
            raise KeyboardInterrupt()

    assert scope.report is not None


def test_scope_skips_after_success(client, coordinator):
    state = state_at(Stage.BOOT_INSTANCE, instance='i-1')
    state.mark_success()

    with CompensationScope(state, coordinator) as scope:
        pass

    assert scope.report is None
    assert client.calls == []


def test_scope_cancelled(client, coordinator):
    with CompensationScope(state_at(Stage.CREATE_INSTANCE), coordinator) as scope:
        scope.cancel()

    assert scope.report is None
    assert client.calls == []
