"""Elapsed-time tracking for a recording session.

The clock is poll-based: callers read ``sample()`` whenever they need the
current value. An optional tick callback lets a UI loop push the sampled
value to the display without the clock owning a timer thread.
"""

import logging
import time
from collections.abc import Callable
from enum import StrEnum

from src.core.exceptions import InvalidStateError

logger = logging.getLogger(__name__)


class ClockState(StrEnum):
    stopped = "stopped"
    running = "running"
    paused = "paused"


class Clock:
    """Stopwatch that accumulates only Running time.

    Args:
        time_source: Monotonic seconds source (injectable for tests).
        on_tick: Optional callback receiving the elapsed value on ``tick()``.
    """

    def __init__(
        self,
        time_source: Callable[[], float] = time.monotonic,
        on_tick: Callable[[float], None] | None = None,
    ) -> None:
        self._now = time_source
        self._on_tick = on_tick
        self._state = ClockState.stopped
        # Elapsed seconds banked before the current running span
        self._accumulated = 0.0
        self._started_at: float | None = None

    @property
    def state(self) -> ClockState:
        return self._state

    def start(self) -> None:
        """Begin a fresh measurement from zero."""
        if self._state is not ClockState.stopped:
            raise InvalidStateError("start clock", self._state)
        self._accumulated = 0.0
        self._started_at = self._now()
        self._state = ClockState.running

    def pause(self) -> None:
        """Freeze elapsed time. No-op when already paused."""
        if self._state is ClockState.paused:
            return
        if self._state is not ClockState.running:
            raise InvalidStateError("pause clock", self._state)
        self._accumulated = self.sample()
        self._started_at = None
        self._state = ClockState.paused

    def resume(self) -> None:
        """Continue from the frozen value. No-op when already running."""
        if self._state is ClockState.running:
            return
        if self._state is not ClockState.paused:
            raise InvalidStateError("resume clock", self._state)
        self._started_at = self._now()
        self._state = ClockState.running

    def stop(self) -> float:
        """Stop the clock and return the total running duration."""
        if self._state is ClockState.stopped:
            raise InvalidStateError("stop clock", self._state)
        self._accumulated = self.sample()
        self._started_at = None
        self._state = ClockState.stopped
        return self._accumulated

    def reset(self) -> None:
        """Return to a stopped clock reading zero."""
        self._state = ClockState.stopped
        self._accumulated = 0.0
        self._started_at = None

    def sample(self) -> float:
        """Return elapsed seconds; live while running, frozen otherwise."""
        if self._state is ClockState.running and self._started_at is not None:
            return self._accumulated + (self._now() - self._started_at)
        return self._accumulated

    def tick(self) -> float:
        """Sample and forward the value to the tick callback, if any."""
        elapsed = self.sample()
        if self._on_tick is not None:
            try:
                self._on_tick(elapsed)
            except Exception:
                logger.warning("Clock tick callback failed (non-fatal)", exc_info=True)
        return elapsed
