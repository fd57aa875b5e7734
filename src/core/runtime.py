"""
Runtime seams: clocks and update-cycle schedulers.

Stores never read the wall clock or register platform callbacks
directly. They receive a Clock and an optional CycleScheduler, so a
test can pin time and decide exactly when a cycle ends.
"""

import threading
import time
from typing import Callable, List, Protocol


class Clock(Protocol):
    """Source of the current time in epoch seconds."""

    def now(self) -> float:
        ...


class SystemClock:
    """Wall clock backed by time.time()."""

    def now(self) -> float:
        return time.time()


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self._now = float(start)

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> float:
        self._now += seconds
        return self._now

    def advance_minutes(self, minutes: float) -> float:
        return self.advance(minutes * 60.0)

    def set(self, value: float) -> None:
        self._now = float(value)


class CycleScheduler(Protocol):
    """Runs callbacks once at the end of the current update cycle."""

    def schedule(self, callback: Callable[[], None]) -> None:
        ...


class ManualCycleScheduler:
    """
    Cycle scheduler driven by the owner's update loop.

    The owner calls tick() once per visual update; every callback
    scheduled since the previous tick runs exactly once. Callbacks
    scheduled while a tick is running wait for the next one.
    """

    def __init__(self):
        self._pending: List[Callable[[], None]] = []
        self._lock = threading.Lock()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def schedule(self, callback: Callable[[], None]) -> None:
        with self._lock:
            self._pending.append(callback)

    def tick(self) -> int:
        """Run the callbacks queued for this cycle. Returns how many ran."""
        with self._lock:
            callbacks, self._pending = self._pending, []
        for callback in callbacks:
            callback()
        return len(callbacks)
