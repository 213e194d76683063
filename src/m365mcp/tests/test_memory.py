"""Tests for the memory governor."""

from types import SimpleNamespace

import psutil
import pytest

from m365mcp.observability import EMERGENCY, MEMORY_WARNING, EventBus, MemoryGovernor, process_memory_ratio


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


def test_first_check_samples_immediately(clock, ratio) -> None:
    """The very first emergency check samples without waiting an interval."""
    ratio.value = 0.97
    governor = MemoryGovernor(sampler=ratio, clock=clock)
    assert governor.check_emergency() is True
    assert governor.emergency_disabled


def test_checks_are_throttled(clock, ratio) -> None:
    """Between samples the cached flag is returned."""
    governor = MemoryGovernor(sampler=ratio, clock=clock, emergency_interval=5.0)
    assert governor.check_emergency() is False
    ratio.value = 0.99
    clock.advance(4.9)
    assert governor.check_emergency() is False
    clock.advance(0.2)
    assert governor.check_emergency() is True


def test_hysteresis(clock, ratio) -> None:
    """Emergency turns on above 0.95 and only clears below 0.80."""
    governor = MemoryGovernor(sampler=ratio, clock=clock, emergency_interval=1.0)
    states = []
    for value in (0.97, 0.90, 0.85, 0.79, 0.90, 0.94, 0.96):
        ratio.value = value
        states.append(governor.check_emergency())
        clock.advance(1.0)
    assert states == [True, True, True, False, False, False, True]


def test_emergency_event_emitted_once(clock, ratio, bus: EventBus) -> None:
    seen: list[dict] = []
    bus.subscribe(EMERGENCY, seen.append)
    governor = MemoryGovernor(bus=bus, sampler=ratio, clock=clock, emergency_interval=1.0)
    ratio.value = 0.97
    governor.check_emergency()
    clock.advance(1.0)
    governor.check_emergency()
    assert seen == [{"type": "memory_critical", "usageRatio": 0.97}]


def test_pressure_warning_collects(ratio, bus: EventBus) -> None:
    """Above the warning ratio a warning is emitted and a collection runs."""
    seen: list[dict] = []
    collected: list[bool] = []
    bus.subscribe(MEMORY_WARNING, seen.append)
    governor = MemoryGovernor(bus=bus, sampler=ratio, collect=lambda: collected.append(True))
    ratio.value = 0.90
    assert governor.check_pressure() == 0.90
    assert seen == [{"usageRatio": 0.90, "threshold": 0.85}]
    assert collected == [True]


def test_pressure_below_warning_is_quiet(ratio, bus: EventBus) -> None:
    seen: list[dict] = []
    bus.subscribe(MEMORY_WARNING, seen.append)
    governor = MemoryGovernor(bus=bus, sampler=ratio, collect=lambda: pytest.fail("collected"))
    governor.check_pressure()
    assert seen == []


def test_failing_sampler_keeps_flag(clock) -> None:
    """A sampler fault is reported out of band and the flag is unchanged."""
    def broken() -> float:
        raise RuntimeError("no /proc")

    governor = MemoryGovernor(sampler=broken, clock=clock)
    assert governor.check_emergency() is False
    assert governor.check_pressure() is None


@pytest.mark.asyncio
async def test_background_task_start_stop(ratio) -> None:
    governor = MemoryGovernor(sampler=ratio, check_interval=60.0)
    governor.start()
    governor.start()
    assert governor.running
    await governor.stop()
    assert not governor.running


# ─────────────────────────────────────────────────────────────────────────────
# Process sampler
# ─────────────────────────────────────────────────────────────────────────────

class FakeProcess:
    """psutil.Process stand-in with a fixed RSS and address-space limit."""

    def __init__(self, rss: int, soft_limit: int) -> None:
        self.rss = rss
        self.soft_limit = soft_limit

    def memory_info(self) -> SimpleNamespace:
        return SimpleNamespace(rss=self.rss)

    def rlimit(self, _resource: int) -> tuple[int, int]:
        return self.soft_limit, self.soft_limit


@pytest.fixture
def host_memory(monkeypatch: pytest.MonkeyPatch) -> None:
    """Pretend the host has 8 GiB and supports RLIMIT_AS."""
    monkeypatch.setattr(psutil, "virtual_memory", lambda: SimpleNamespace(total=8 * 1024**3, percent=99.0))
    monkeypatch.setattr(psutil, "RLIMIT_AS", 9, raising=False)
    monkeypatch.setattr(psutil, "RLIMIT_INFINITY", -1, raising=False)


def test_process_ratio_ignores_host_usage(host_memory) -> None:
    """A busy host does not count against this process."""
    assert process_memory_ratio(FakeProcess(1024**3, -1)) == pytest.approx(0.125)


def test_process_ratio_uses_address_space_limit(host_memory) -> None:
    assert process_memory_ratio(FakeProcess(768 * 1024**2, 1024**3)) == pytest.approx(0.75)
