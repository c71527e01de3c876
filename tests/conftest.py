"""Shared fixtures for the reporter tests."""
import json

import httpx
import pytest

from dogmetrics.client import Client
from dogmetrics.registry import Registry

T = 1346340794


class FakeClock:
    """Manually advanced clock, usable wherever a ``time.time``-like callable is expected."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class RecordingHandler:
    """httpx.MockTransport handler that records request bodies."""

    def __init__(self, status_code: int = 202):
        self.status_code = status_code
        self.requests = []

    @property
    def payloads(self):
        return [json.loads(r.content) for r in self.requests]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json={"status": "ok"})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry():
    return Registry()


@pytest.fixture
def handler():
    return RecordingHandler()


@pytest.fixture
def client(handler):
    http = httpx.Client(transport=httpx.MockTransport(handler))
    with Client(host="My Host", api_key="secret", http_client=http) as c:
        yield c
