import json

import pytest
import requests

from clash_exporter.config.config_loader import ExporterConfig
from clash_exporter.connectors.base import Connector
from clash_exporter.core.errors import FetchError
from clash_exporter.core.metrics import ExporterMetrics

SCENARIO = {
    "downloadTotal": 100,
    "uploadTotal": 50,
    "connections": [
        {"id": "a", "upload": 10, "download": 20, "chains": ["proxyA"]},
        {"id": "b", "upload": 5, "download": 15, "chains": ["proxyA"]},
    ],
}


class FakeConnector(Connector):
    """Replays queued payloads; an Exception instance in the queue is raised."""

    def __init__(self, *payloads):
        self.payloads = list(payloads)
        self.calls = 0
        self.url = "http://clash.test/connections"

    def push(self, payload):
        self.payloads.append(payload)

    def fetch_snapshot(self) -> bytes:
        self.calls += 1
        item = self.payloads.pop(0) if len(self.payloads) > 1 else self.payloads[0]
        if isinstance(item, Exception):
            raise item
        if isinstance(item, (bytes, str)):
            return item.encode() if isinstance(item, str) else item
        return json.dumps(item).encode()


class FakeResponse:
    def __init__(self, status_code=200, content=b"{}"):
        self.status_code = status_code
        self.content = content

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


class FakeSession:
    def __init__(self, result):
        self.result = result
        self.headers = {}
        self.requests = []
        self.closed = False

    def get(self, url, timeout=None):
        self.requests.append((url, timeout))
        if isinstance(self.result, Exception):
            raise self.result
        return self.result

    def close(self):
        self.closed = True


@pytest.fixture
def metrics():
    return ExporterMetrics()


@pytest.fixture
def scenario():
    return json.loads(json.dumps(SCENARIO))


@pytest.fixture
def cfg():
    return ExporterConfig()


@pytest.fixture
def fetch_timeout():
    return FetchError("error fetching connections from clash: read timed out")


@pytest.fixture
def make_connector():
    return FakeConnector


@pytest.fixture
def make_session():
    return FakeSession


@pytest.fixture
def make_response():
    return FakeResponse
