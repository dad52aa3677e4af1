"""Tests for the follow-on cleanup job trigger."""

import json
import logging

import pytest

from pvs_restore.core.code_engine import CodeEngineClient
from pvs_restore.core.exceptions import DataShapeError, SubmissionError
from pvs_restore.main import trigger_cleanup_job

from conftest import FakeAuthenticator
from helpers import FakeHttp

PROJECTS = {'projects': [{'name': 'other', 'id': 'p-0'}, {'name': 'IBMi', 'id': 'p-1'}]}


def make_client(*replies):
    http = FakeHttp(*replies)
    return CodeEngineClient('us-south', FakeAuthenticator(), http=http), http


def test_submit_job_run():
    ce, http = make_client((200, PROJECTS), (202, {'name': 'prod-cleanup-run-1'}))

    assert ce.submit_job_run('IBMi', 'prod-cleanup') == 'prod-cleanup-run-1'

    post = http.requests[1]
    assert post['uri'] == 'https://api.us-south.codeengine.cloud.ibm.com/v2/projects/p-1/job_runs'
    assert json.loads(post['body']) == {'job_name': 'prod-cleanup'}


def test_unknown_project():
    ce, http = make_client((200, PROJECTS))

    with pytest.raises(SubmissionError):
        ce.submit_job_run('missing', 'prod-cleanup')
    assert len(http.requests) == 1


def test_reply_without_run_name():
    ce, _ = make_client((200, PROJECTS), (202, {}))

    with pytest.raises(DataShapeError):
        ce.submit_job_run('IBMi', 'prod-cleanup')


class FakeCodeEngine:
    def __init__(self, error=None):
        self.error = error
        self.submitted = []

    def submit_job_run(self, project, job):
        self.submitted.append((project, job))
        if self.error:
            raise self.error
        return 'run-1'


def test_trigger_cleanup_job(config):
    ce = FakeCodeEngine()

    run_name = trigger_cleanup_job(config, FakeAuthenticator(), logging.getLogger('test'), ce_client=ce)

    assert run_name == 'run-1'
    assert ce.submitted == [('IBMi', 'prod-cleanup')]


def test_trigger_cleanup_job_failure_only_warns(config, caplog):
    ce = FakeCodeEngine(SubmissionError('Code Engine project lookup', "no project named 'IBMi'"))

    with caplog.at_level(logging.WARNING, logger='test'):
        run_name = trigger_cleanup_job(config, FakeAuthenticator(), logging.getLogger('test'), ce_client=ce)

    assert run_name is None
    assert 'Failed to submit cleanup job' in caplog.text
