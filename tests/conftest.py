"""Shared pytest fixtures: a scripted CMS backend, a manual clock and a recording sleep."""

from typing import Any, Callable, Dict, List, Tuple, Union

import httpx
import pytest

from app.config import Settings
from app.services.dashboard import Dashboard

API_BASE = "http://cms.test/api"
STORAGE_BASE = "http://cms.test/storage"

Reply = Union[Tuple[int, Any], Callable[[httpx.Request], Any]]


class FakeBackend:
    """Answers requests from a per-route script; unknown routes get a 404.

    Each route holds a queue of replies.  Replies are consumed in order and the
    last one repeats, so a single reply answers every request to that route.
    A reply is either ``(status, json_body)`` or a callable taking the request.
    """

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], List[Reply]] = {}
        self.requests: List[httpx.Request] = []

    def on(self, method: str, endpoint: str, *replies: Reply) -> None:
        self.routes[(method, f"/api/{endpoint}")] = list(replies)

    def calls(self, method: str, endpoint: str) -> List[httpx.Request]:
        path = f"/api/{endpoint}"
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def __call__(self, request: httpx.Request) -> Any:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"message": "Not found."})
        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(reply):
            return reply(request)
        status, body = reply
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Stands in for ``asyncio.sleep``; records the requested delays and returns at once."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        api_base_url=API_BASE,
        storage_base_url=STORAGE_BASE,
        api_token="secret-token",
        retry_jitter_ratio=0,
        snapshot_dir=None,
    )


@pytest.fixture
def dashboard(settings, backend, clock, sleeper) -> Dashboard:
    return Dashboard(settings, transport=backend.transport, sleep=sleeper, clock=clock)
