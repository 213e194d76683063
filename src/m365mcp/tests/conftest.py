"""Shared fixtures: global resets, a recording Graph fake, an assembled app."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import pytest
from hypothesis import HealthCheck, settings as hypothesis_settings

from m365mcp.foundation.config import M365Settings, clear_settings_cache
from m365mcp.observability import (
    CircularBuffer,
    ErrorThrottle,
    EventBus,
    LogFilter,
    MemoryGovernor,
    MonitoringService,
    reset_event_bus,
    reset_monitor,
    set_monitor,
)
from m365mcp.registry import reset_registry
from m365mcp.server import Application, build_application


# reset_globals is function scoped and only clears module globals
hypothesis_settings.register_profile("m365mcp", suppress_health_check=[HealthCheck.function_scoped_fixture])
hypothesis_settings.load_profile("m365mcp")


@dataclass
class Call:
    method: str
    path: str
    user_id: str | None
    session_id: str | None
    params: dict[str, Any]
    version: str | None
    body: Any = None


@dataclass
class FakeRequest:
    graph: FakeGraph
    path: str
    user_id: str | None
    session_id: str | None
    params: dict[str, Any] = field(default_factory=dict)
    api_version: str | None = None

    def query(self, params: dict[str, Any]) -> FakeRequest:
        self.params.update(params)
        return self

    def version(self, version: str) -> FakeRequest:
        self.api_version = version
        return self

    async def get(self) -> Any:
        return self.graph.answer(self, "GET")

    async def post(self, body: Any = None) -> Any:
        return self.graph.answer(self, "POST", body)

    async def patch(self, body: Any = None) -> Any:
        return self.graph.answer(self, "PATCH", body)

    async def put(self, body: Any = None) -> Any:
        return self.graph.answer(self, "PUT", body)

    async def delete(self) -> Any:
        return self.graph.answer(self, "DELETE")


class FakeGraph:
    """GraphClient stand-in that records calls and replays canned responses.

    Responses are keyed by (METHOD, path). A value that is an exception is
    raised; a callable is invoked with the Call.
    """

    def __init__(self) -> None:
        self.calls: list[Call] = []
        self.responses: dict[tuple[str, str], Any] = {}

    def api(self, path: str, user_id: str | None = None, session_id: str | None = None) -> FakeRequest:
        return FakeRequest(self, path, user_id, session_id)

    def respond(self, method: str, path: str, value: Any) -> None:
        self.responses[(method, path)] = value

    def answer(self, request: FakeRequest, method: str, body: Any = None) -> Any:
        call = Call(method, request.path, request.user_id, request.session_id, dict(request.params),
                    request.api_version, body)
        self.calls.append(call)
        value = self.responses.get((method, request.path))
        if isinstance(value, BaseException):
            raise value
        if callable(value):
            return value(call)
        return value

    @property
    def last(self) -> Call:
        return self.calls[-1]


class Clock:
    """Manually advanced clock."""

    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, delta: float) -> None:
        self.now += delta


class Ratio:
    """Settable memory sampler."""

    def __init__(self, value: float = 0.10) -> None:
        self.value = value

    def __call__(self) -> float:
        return self.value


@pytest.fixture(autouse=True)
def reset_globals() -> object:
    """Reset global monitor, registry, bus and settings around each test."""
    reset_monitor()
    reset_registry()
    reset_event_bus()
    clear_settings_cache()
    yield
    reset_monitor()
    reset_registry()
    reset_event_bus()
    clear_settings_cache()


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def ratio() -> Ratio:
    return Ratio()


@pytest.fixture
def make_monitor(ratio: Ratio) -> Callable[..., MonitoringService]:
    """Factory for an in-memory monitor (no sink) with a settable memory sampler."""
    def build(*, clock: Callable[[], float] | None = None, development: bool = True, production: bool = False,
              capacity: int = 100, metric_floor: float = 10.0) -> MonitoringService:
        governor = MemoryGovernor(sampler=ratio, clock=clock or (lambda: 0.0), emergency_interval=5.0)
        return MonitoringService(
            buffer=CircularBuffer(capacity),
            throttle=ErrorThrottle(clock=(lambda: clock() * 1000) if clock else (lambda: 0.0)),
            governor=governor,
            log_filter=LogFilter(development=development, production=production, slow_metric_floor_ms=metric_floor),
            sink=None,
        )
    return build


@pytest.fixture
def monitor(make_monitor: Callable[..., MonitoringService]) -> MonitoringService:
    service = make_monitor()
    set_monitor(service)
    return service


@pytest.fixture
def graph() -> FakeGraph:
    return FakeGraph()


@pytest.fixture
def settings() -> M365Settings:
    return M365Settings(environment="test", silent_mode=True)


@pytest.fixture
def app(settings: M365Settings, graph: FakeGraph, monitor: MonitoringService) -> Application:
    return build_application(settings, graph=graph, monitor=monitor, bus=EventBus(), user_id="user-1",
                             session_id="session-1")
