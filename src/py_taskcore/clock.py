"""Clock sources for the task core.

The hardware timer lives outside the core.  All the core ever asks of
it is "what time is it?" — in milliseconds when stamping a task's start
time, in microseconds when answering the get-time syscall.  That
boundary is the ``Clock`` protocol.

Two implementations:

- **MonotonicClock** — reads ``time.monotonic_ns`` relative to the
  moment the clock was created, so readings start near zero like a
  freshly booted machine's cycle counter.
- **ManualClock** — advanced explicitly by ``tick``.  Tests use it to
  make timestamps deterministic.

Readings are always strictly positive: a start time of 0 means "never
started" in the task control block, so the clock never reports 0.
"""

from __future__ import annotations

from dataclasses import dataclass
from time import monotonic_ns
from typing import Protocol

_NS_PER_US = 1_000
_US_PER_MS = 1_000
_US_PER_SEC = 1_000_000


class Clock(Protocol):
    """Anything that can report the current time in microseconds."""

    def now_us(self) -> int:
        """Return the current time in microseconds."""
        ...

    def now_ms(self) -> int:
        """Return the current time in milliseconds."""
        ...


@dataclass(frozen=True)
class TimeVal:
    """A ``(seconds, microseconds)`` pair, as returned by get-time.

    Attributes:
        sec: Whole seconds.
        usec: Remaining microseconds (always < 1_000_000).

    """

    sec: int
    usec: int

    @classmethod
    def from_us(cls, micros: int) -> TimeVal:
        """Split a microsecond reading into seconds and microseconds."""
        sec, usec = divmod(micros, _US_PER_SEC)
        return cls(sec=sec, usec=usec)

    def to_us(self) -> int:
        """Return the total number of microseconds."""
        return self.sec * _US_PER_SEC + self.usec


class MonotonicClock:
    """Wall-clock source backed by the host's monotonic counter."""

    def __init__(self) -> None:
        """Create a clock whose epoch is the moment of construction."""
        self._epoch_ns = monotonic_ns()

    def now_us(self) -> int:
        """Return microseconds since the clock was created (at least 1)."""
        return max(1, (monotonic_ns() - self._epoch_ns) // _NS_PER_US)

    def now_ms(self) -> int:
        """Return milliseconds since the clock was created (at least 1)."""
        return max(1, self.now_us() // _US_PER_MS)


class ManualClock:
    """A clock that only moves when told to.

    Time starts at ``start_us`` and advances by calling ``tick``.
    """

    def __init__(self, *, start_us: int = _US_PER_MS) -> None:
        """Create a manual clock.

        Args:
            start_us: Initial reading in microseconds (must be positive).

        Raises:
            ValueError: If *start_us* is not positive.

        """
        if start_us <= 0:
            msg = f"Clock must start after 0, got {start_us}"
            raise ValueError(msg)
        self._now_us = start_us

    def tick(self, *, ms: int = 0, us: int = 0) -> None:
        """Advance the clock.

        Raises:
            ValueError: If asked to move backwards.

        """
        delta = ms * _US_PER_MS + us
        if delta < 0:
            msg = f"Cannot move the clock backwards by {-delta} us"
            raise ValueError(msg)
        self._now_us += delta

    def now_us(self) -> int:
        """Return the current reading in microseconds."""
        return self._now_us

    def now_ms(self) -> int:
        """Return the current reading in milliseconds (at least 1)."""
        return max(1, self._now_us // _US_PER_MS)
