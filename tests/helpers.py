"""Builders shared by the stage, rollback and HTTP client tests."""

import json

import httplib2

from pvs_restore.orchestration.state import STAGE_ORDER, RunState


def state_at(stage, **ids):
    """
    A run state that has entered ``stage``, with identifiers filled in.

    Keyword arguments: instance, snapshot, source=(boot, [data]),
    clones=(boot, [data]).
    """
    state = RunState('clone-202601010000')
    for next_stage in STAGE_ORDER[1:]:
        state.advance(next_stage)
        if next_stage == stage:
            break

    if 'instance' in ids:
        state.set_instance_id(ids['instance'])
    if 'snapshot' in ids:
        state.set_snapshot_id(ids['snapshot'])
    if 'source' in ids:
        state.set_source_volumes(*ids['source'])
    if 'clones' in ids:
        state.set_clones(*ids['clones'])
    return state


class FakeHttp:
    """Stands in for httplib2.Http: replays (status, body) pairs and records each request."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.requests = []

    def request(self, uri, method='GET', body=None, headers=None):
        self.requests.append({'uri': uri, 'method': method, 'body': body, 'headers': headers})
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        status, content = reply
        if not isinstance(content, bytes):
            content = json.dumps(content).encode('utf-8')
        return httplib2.Response({'status': str(status)}), content
