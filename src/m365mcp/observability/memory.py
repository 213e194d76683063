"""Memory-pressure governor.

Two paths share one sampler:
- check_pressure(): periodic (default every 30s). Above the warning ratio it
  emits `system:memory:warning` and runs a garbage collection.
- check_emergency(): called on every log submission but samples at most once
  per emergency interval. Above the emergency ratio it disables non-error
  output and emits `system:emergency`; below the recovery ratio it re-enables.
"""

from __future__ import annotations

import asyncio
import gc
import time
from collections.abc import Callable
from dataclasses import dataclass, field

import psutil

from .events import EMERGENCY, MEMORY_WARNING, EventBus, stderr_report


def process_memory_ratio(process: psutil.Process | None = None) -> float:
    """Resident memory of this process against its ceiling.

    The ceiling is the RLIMIT_AS soft limit where one is set, otherwise
    physical memory.
    """
    process = process or psutil.Process()
    ceiling = psutil.virtual_memory().total
    if hasattr(psutil, "RLIMIT_AS"):
        soft, _ = process.rlimit(psutil.RLIMIT_AS)
        if 0 < soft != psutil.RLIMIT_INFINITY:
            ceiling = min(ceiling, soft)
    return process.memory_info().rss / ceiling


@dataclass
class MemoryGovernor:
    """Process-wide emergency flag with hysteresis.

    The flag has a single writer (whichever path samples) and many readers;
    readers may see a value at most one emergency interval stale.
    """

    bus: EventBus | None = None
    sampler: Callable[[], float] = process_memory_ratio
    clock: Callable[[], float] = time.monotonic
    warning_ratio: float = 0.85
    emergency_ratio: float = 0.95
    recovery_ratio: float = 0.80
    check_interval: float = 30.0
    emergency_interval: float = 5.0
    collect: Callable[[], object] = gc.collect
    emergency_disabled: bool = False
    last_check: float | None = None
    _task: asyncio.Task[None] | None = field(default=None, repr=False)

    def _sample(self) -> float | None:
        try:
            return float(self.sampler())
        except Exception as e:  # noqa: BLE001
            stderr_report("INFRASTRUCTURE ERROR", "memory sample failed", e)
            return None

    def check_emergency(self) -> bool:
        """Throttled emergency check. Returns the current emergency flag."""
        now = self.clock()
        if self.last_check is not None and now - self.last_check < self.emergency_interval:
            return self.emergency_disabled
        self.last_check = now
        ratio = self._sample()
        if ratio is None:
            return self.emergency_disabled
        if ratio > self.emergency_ratio and not self.emergency_disabled:
            self.emergency_disabled = True
            stderr_report("[MCP MONITORING]", f"EMERGENCY: memory usage {ratio:.0%}, non-error logging disabled")
            self._emit(EMERGENCY, {"type": "memory_critical", "usageRatio": ratio})
        elif ratio < self.recovery_ratio and self.emergency_disabled:
            self.emergency_disabled = False
            stderr_report("[MCP MONITORING]", f"memory recovered to {ratio:.0%}, logging re-enabled")
        return self.emergency_disabled

    def check_pressure(self) -> float | None:
        """Periodic warning check. Returns the sampled ratio."""
        ratio = self._sample()
        if ratio is not None and ratio > self.warning_ratio:
            stderr_report("[MCP MONITORING]", f"high memory usage {ratio:.0%}")
            self._emit(MEMORY_WARNING, {"usageRatio": ratio, "threshold": self.warning_ratio})
            self.collect()
        return ratio

    def _emit(self, event: str, payload: dict[str, object]) -> None:
        if self.bus is not None:
            self.bus.emit(event, payload)

    # ─────────────────────────────────────────────────────────────────────────
    # Background task
    # ─────────────────────────────────────────────────────────────────────────

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.check_interval)
            self.check_pressure()

    def start(self) -> None:
        """Start the periodic check on the running loop. Idempotent."""
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._run(), name="memory-governor")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
