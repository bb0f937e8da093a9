from __future__ import annotations

import sys
from collections import deque
from pathlib import Path
from typing import Deque, List, Optional, Union

import httpx
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from jobs import IdentityProvider, IdentityStore, JobLifecycleController  # noqa: E402
from services import JobsApiClient  # noqa: E402

API_BASE = "http://backend.test"

Scripted = Union[httpx.Response, Exception]


class ScriptedBackend:
    """httpx handler replaying queued responses for upload and status calls."""

    def __init__(self) -> None:
        self.uploads: Deque[Scripted] = deque()
        self.polls: Deque[Scripted] = deque()
        self.other: Deque[Scripted] = deque()
        self.requests: List[httpx.Request] = []

    def queue_upload(self, status_code: int = 202, *, json=None, text: str = "") -> None:
        self.uploads.append(_build(status_code, json=json, text=text))

    def queue_poll(self, status_code: int = 200, *, json=None, text: str = "") -> None:
        self.polls.append(_build(status_code, json=json, text=text))

    def queue_other(self, status_code: int = 200, *, json=None, text: str = "") -> None:
        self.other.append(_build(status_code, json=json, text=text))

    @property
    def poll_requests(self) -> List[httpx.Request]:
        return [request for request in self.requests if request.url.path == "/api/v1/jobs"]

    @property
    def upload_requests(self) -> List[httpx.Request]:
        return [request for request in self.requests if request.url.path == "/api/v1/jobs/upload"]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/api/v1/jobs/upload":
            queue = self.uploads
        elif request.url.path == "/api/v1/jobs":
            queue = self.polls
        else:
            queue = self.other
        if not queue:
            raise AssertionError(f"unexpected request: {request.method} {request.url}")
        item = queue.popleft()
        if isinstance(item, Exception):
            raise item
        return item


def _build(status_code: int, *, json=None, text: str = "") -> httpx.Response:
    if json is not None:
        return httpx.Response(status_code, json=json)
    return httpx.Response(status_code, text=text)


class ManualLoop:
    """Stand-in for PollingLoop whose ticks are fired by the test."""

    def __init__(self, tick, *, interval_s: float, name: str = "manual") -> None:
        self.tick = tick
        self.interval_s = interval_s
        self.name = name
        self.started = False
        self.cancelled = False
        self.finished = False
        self.cancel_calls = 0

    @property
    def active(self) -> bool:
        return self.started and not self.cancelled and not self.finished

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancel_calls += 1
        self.cancelled = True

    def join(self, timeout: Optional[float] = None) -> None:
        return None

    def fire(self) -> bool:
        if not self.active:
            return False
        keep_going = self.tick()
        if not keep_going:
            self.finished = True
        return keep_going


class LoopRecorder:
    def __init__(self) -> None:
        self.loops: List[ManualLoop] = []

    def __call__(self, tick, *, interval_s: float, name: str = "manual") -> ManualLoop:
        loop = ManualLoop(tick, interval_s=interval_s, name=name)
        self.loops.append(loop)
        return loop


@pytest.fixture
def backend() -> ScriptedBackend:
    return ScriptedBackend()


@pytest.fixture
def api(backend):
    http_client = httpx.Client(transport=httpx.MockTransport(backend))
    client = JobsApiClient(API_BASE, http_client=http_client)
    yield client
    http_client.close()


@pytest.fixture
def identity_provider(tmp_path) -> IdentityProvider:
    return IdentityProvider(IdentityStore(tmp_path / "client_state.json"))


@pytest.fixture
def loops() -> LoopRecorder:
    return LoopRecorder()


@pytest.fixture
def controller(api, identity_provider, loops):
    ctrl = JobLifecycleController(api, identity_provider, poll_interval_s=3.0, loop_factory=loops)
    yield ctrl
    ctrl.close()
