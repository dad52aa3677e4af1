"""Tests for the PowerVS control-plane client."""

import json

import httplib2
import pytest

from pvs_restore.core.client import PowerVSClient, first_present
from pvs_restore.core.exceptions import (
    APIError,
    DataShapeError,
    ResourceNotFoundError,
    TransportError,
)

from conftest import FakeAuthenticator
from helpers import FakeHttp

BASE = 'https://us-south.power-iaas.cloud.ibm.com/pcloud'


@pytest.fixture
def authenticator():
    return FakeAuthenticator()


def make_client(config, authenticator, *replies):
    http = FakeHttp(*replies)
    return PowerVSClient(config, authenticator, http=http), http


def test_request_url_and_headers(config, authenticator):
    client, http = make_client(config, authenticator, (200, {'status': 'ACTIVE'}))

    assert client.get_instance('i-1') == {'status': 'ACTIVE'}

    request = http.requests[0]
    assert request['uri'] == f'{BASE}/v1/cloud-instances/ws-1/pvm-instances/i-1'
    assert request['method'] == 'GET'
    assert request['headers']['Authorization'] == 'Bearer token'
    assert request['headers']['CRN'] == config.crn
    assert request['body'] is None


def test_v2_endpoints_and_bodies(config, authenticator):
    client, http = make_client(config, authenticator, (202, {'cloneTaskID': 'task-1'}))

    client.clone_volumes(['v-boot', 'v-data'], 'tier3', 'clone-202601010000')

    request = http.requests[0]
    assert request['uri'] == f'{BASE}/v2/cloud-instances/ws-1/volumes/clone-async'
    assert json.loads(request['body']) == {
        'name': 'clone-202601010000',
        'volumeIDs': ['v-boot', 'v-data'],
        'targetStorageTier': 'tier3',
    }


def test_create_instance_passes_api_version(config, authenticator):
    client, http = make_client(config, authenticator, (201, [{'pvmInstanceID': 'i-1'}]))

    assert client.create_instance({'serverName': 'restore-lpar'}) == [{'pvmInstanceID': 'i-1'}]
    assert http.requests[0]['uri'].endswith(f'/pvm-instances?version={config.api_version}')


def test_unauthorized_is_retried_once_with_fresh_token(config, authenticator):
    client, http = make_client(config, authenticator, (401, {}), (200, {'name': 'ws'}))

    assert client.get_workspace() == {'name': 'ws'}
    assert authenticator.invalidated == 1
    assert len(http.requests) == 2


def test_repeated_unauthorized_is_an_api_error(config, authenticator):
    client, _ = make_client(config, authenticator, (401, {}), (401, {}))

    with pytest.raises(APIError) as excinfo:
        client.get_workspace()

    assert excinfo.value.status == 401
    assert not excinfo.value.transient


def test_not_found(config, authenticator):
    client, _ = make_client(config, authenticator, (404, {'description': 'volume not found'}))

    with pytest.raises(ResourceNotFoundError):
        client.get_volume('c-boot')


def test_server_error_is_transient(config, authenticator):
    client, _ = make_client(config, authenticator, (503, b'unavailable'))

    with pytest.raises(APIError) as excinfo:
        client.get_snapshot('s-1')

    assert excinfo.value.transient
    assert 'unavailable' in str(excinfo.value)


def test_transport_error(config, authenticator):
    client, _ = make_client(config, authenticator, OSError('connection reset'))

    with pytest.raises(TransportError) as excinfo:
        client.get_snapshot('s-1')

    assert excinfo.value.transient


def test_non_json_body(config, authenticator):
    client, _ = make_client(config, authenticator, (200, b'<html>gateway</html>'))

    with pytest.raises(DataShapeError):
        client.get_instance('i-1')


def test_empty_body_is_empty_dict(config, authenticator):
    client, _ = make_client(config, authenticator, (202, b''))

    assert client.bulk_detach('i-1') == {}


def test_list_instance_volumes(config, authenticator):
    reply = {'volumes': [{'volumeID': 'c-boot'}, {'volumeId': 'c-data'}, {'name': 'no-id'}]}
    client, _ = make_client(config, authenticator, (200, reply))

    assert client.list_instance_volumes('i-1') == ['c-boot', 'c-data']


def test_find_instance_by_name(config, authenticator):
    reply = {'pvmInstances': [
        {'serverName': 'prod-lpar', 'pvmInstanceID': 'i-prod'},
        {'serverName': 'restore-lpar', 'pvmInstanceID': 'i-restore'},
    ]}
    client, _ = make_client(config, authenticator, (200, reply), (200, reply))

    assert client.find_instance_by_name('restore-lpar') == 'i-restore'
    assert client.find_instance_by_name('other') is None


def test_first_present():
    assert first_present({'a': '', 'b': 'x'}, 'a', 'b') == 'x'
    assert first_present({'a': 'null'}, 'a') is None
    assert first_present(['not', 'a', 'dict'], 'a') is None
