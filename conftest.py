import json

import pytest
import requests


class FakeResponse:
    def __init__(self, status_code=200, text="", reason="OK"):
        self.status_code = status_code
        self.text = text
        self.reason = reason

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        return json.loads(self.text)


class FakeSession:
    """Stand-in for requests.Session that replays queued responses per path fragment"""

    def __init__(self, routes=None):
        self.routes = {key: list(value) for key, value in (routes or {}).items()}
        self.calls = []

    def _next(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        for fragment, queue in self.routes.items():
            if fragment in url:
                item = queue.pop(0) if len(queue) > 1 else queue[0]
                if isinstance(item, Exception):
                    raise item
                return item
        raise AssertionError(f"Unexpected {method} {url}")

    def post(self, url, **kwargs):
        return self._next("POST", url, **kwargs)

    def get(self, url, **kwargs):
        return self._next("GET", url, **kwargs)


class RecordingSleep:
    def __init__(self, on_sleep=None):
        self.calls = []
        self.on_sleep = on_sleep

    async def __call__(self, delay):
        self.calls.append(delay)
        if self.on_sleep:
            self.on_sleep()


class ScriptedBlastService:
    """In-memory EBI service: scripted statuses and a fixed result payload"""

    def __init__(self, statuses, payload=None, job_id="ncbiblast-R20261017-000001-0001-1234-p1m"):
        self.statuses = list(statuses)
        self.payload = payload if payload is not None else {"hits": []}
        self.job_id = job_id
        self.calls = []

    def submit(self, request):
        from blast_models import JobHandle
        request.validate()
        self.calls.append(("submit", request))
        return JobHandle(self.job_id)

    def get_status(self, handle):
        self.calls.append(("status", handle.job_id))
        item = self.statuses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def get_result(self, handle):
        self.calls.append(("result", handle.job_id))
        return self.payload

    def count(self, kind):
        return sum(1 for call in self.calls if call[0] == kind)


def make_raw_hit(n, identity=90.0, expect=1e-50, score=500):
    return {
        "hit_num": n,
        "hit_def": f"SP:P{n:05d} Protein {n}",
        "hit_desc": f"Protein {n} OS=Homo sapiens",
        "hit_acc": f"P{n:05d}",
        "hit_hsps": [
            {"hsp_num": 1, "hsp_score": score, "hsp_bit_score": 200.5,
             "hsp_expect": expect, "hsp_identity": identity},
            {"hsp_num": 2, "hsp_score": 10, "hsp_expect": 5.0, "hsp_identity": 20.0},
        ],
    }


@pytest.fixture
def fake_response():
    return FakeResponse


@pytest.fixture
def fake_session():
    return FakeSession


@pytest.fixture
def recording_sleep():
    return RecordingSleep


@pytest.fixture
def scripted_service():
    return ScriptedBlastService


@pytest.fixture
def raw_hit():
    return make_raw_hit


@pytest.fixture
def connection_error():
    return requests.exceptions.ConnectionError("connection reset by peer")
