"""Shared fixtures: a scripted fake PowerVS client and a test configuration."""

import pytest

from pvs_restore.core.config import JobConfig
from pvs_restore.core.exceptions import ResourceNotFoundError

CRN = 'crn:v1:bluemix:public:power-iaas:dal10:a/acct123:ws-1::'


class FakeAuthenticator:
    def __init__(self):
        self.invalidated = 0

    def get_token(self):
        return 'token'

    def invalidate(self):
        self.invalidated += 1


class FakePowerVSClient:
    """
    Stand-in for PowerVSClient.

    Each method returns the next scripted reply for its name; the last
    reply repeats. A scripted exception instance is raised instead.
    Every call is logged in ``calls`` as (method, args).
    """

    DEFAULTS = {
        'get_workspace': {'name': 'test-workspace'},
        'create_instance': {'pvmInstanceID': 'i-1'},
        'get_instance': {'status': 'SHUTOFF'},
        'find_instance_by_name': None,
        'configure_boot_mode': {},
        'start_instance': {},
        'delete_instance': {},
        'create_snapshot': {'snapshotID': 's-1'},
        'get_snapshot': {
            'status': 'available',
            'volumeSnapshots': [
                {'volumeID': 'v-boot', 'bootable': True},
                {'volumeID': 'v-data', 'bootable': False},
            ],
        },
        'clone_volumes': {'cloneTaskID': 'task-1'},
        'get_clone_task': {
            'status': 'completed',
            'clonedVolumes': [
                {'sourceVolume': 'v-boot', 'clonedVolume': 'c-boot'},
                {'sourceVolume': 'v-data', 'clonedVolume': 'c-data'},
            ],
        },
        'get_volume': {'state': 'available'},
        'attach_volumes': {},
        'list_instance_volumes': [],
        'bulk_detach': {},
        'bulk_delete': {},
    }

    def __init__(self):
        self.authenticator = FakeAuthenticator()
        self.calls = []
        self.scripts = {}

    def script(self, name, *replies):
        """Queue replies for a method (the last one repeats)."""
        self.scripts[name] = list(replies)
        return self

    def called(self, name):
        """Argument tuples of every call to ``name``."""
        return [args for method, args in self.calls if method == name]

    def _reply(self, name, *args):
        self.calls.append((name, args))
        queue = self.scripts.get(name)
        if queue:
            reply = queue.pop(0) if len(queue) > 1 else queue[0]
        else:
            reply = self.DEFAULTS[name]
        if isinstance(reply, BaseException):
            raise reply
        return reply

    def get_workspace(self):
        return self._reply('get_workspace')

    def create_instance(self, spec):
        return self._reply('create_instance', spec)

    def get_instance(self, instance_id):
        return self._reply('get_instance', instance_id)

    def find_instance_by_name(self, name):
        return self._reply('find_instance_by_name', name)

    def configure_boot_mode(self, instance_id, boot_mode='a', operating_mode='normal'):
        return self._reply('configure_boot_mode', instance_id, boot_mode, operating_mode)

    def start_instance(self, instance_id):
        return self._reply('start_instance', instance_id)

    def delete_instance(self, instance_id):
        return self._reply('delete_instance', instance_id)

    def create_snapshot(self, instance, name):
        return self._reply('create_snapshot', instance, name)

    def get_snapshot(self, snapshot_id):
        return self._reply('get_snapshot', snapshot_id)

    def clone_volumes(self, volume_ids, target_tier, name):
        return self._reply('clone_volumes', list(volume_ids), target_tier, name)

    def get_clone_task(self, task_id):
        return self._reply('get_clone_task', task_id)

    def get_volume(self, volume_id):
        return self._reply('get_volume', volume_id)

    def attach_volumes(self, instance_id, boot_id, data_ids=None):
        return self._reply('attach_volumes', instance_id, boot_id, list(data_ids or []))

    def list_instance_volumes(self, instance_id):
        return self._reply('list_instance_volumes', instance_id)

    def bulk_detach(self, instance_id):
        return self._reply('bulk_detach', instance_id)

    def bulk_delete(self, volume_ids):
        return self._reply('bulk_delete', list(volume_ids))


def not_found(volume_id='v'):
    """A 404 as the client reports it."""
    return ResourceNotFoundError('GET', f'https://example/volumes/{volume_id}', 404, 'not found')


@pytest.fixture
def client():
    return FakePowerVSClient()


@pytest.fixture
def config():
    return JobConfig(
        api_key='test-api-key',
        crn=CRN,
        cloud_instance_id='ws-1',
        primary_instance='prod-lpar',
        secondary_name='restore-lpar',
        subnet_id='net-1',
        private_ip='10.0.0.5',
        keypair_name='ops-key',
        show_progress=False,
    )


@pytest.fixture
def sleeps():
    """Seconds passed to each sleep() call."""
    return []


@pytest.fixture
def sleep(sleeps):
    return sleeps.append
