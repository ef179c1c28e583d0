"""Clock ports and system adapters.

Provides two Protocol ports and their production adapters:

- :class:`MonotonicClockPort` / :class:`SystemMonotonicClock` — a
  high-resolution counter plus a low-resolution uptime reading, the
  raw material for uptime tracking.
- :class:`WallClockPort` / :class:`SystemWallClock` — the device's
  own UTC wall clock in Unix milliseconds.

**Why two monotonic readings?** ``time.perf_counter_ns()`` has the
best resolution but an arbitrary epoch, so only deltas mean anything.
``time.monotonic_ns()`` is coarser but, on the platforms we care
about, counts from system boot.  The time base anchors high-resolution
deltas on a low-resolution uptime snapshot taken at the same moment.

The wall clock is *never* used to measure elapsed time, since it follows
NTP slews and manual changes.  It only seeds the boot-time estimate
and serves as the reference for skew.
"""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable

_NS_PER_MS = 1_000_000
_NS_PER_S = 1_000_000_000


@runtime_checkable
class MonotonicClockPort(Protocol):
    """Monotonic counter used for uptime tracking.

    Tests inject a deterministic fake to control elapsed time.
    """

    def now(self) -> int:
        """Return the current counter value in ticks.

        Only the *difference* between two calls is meaningful.
        """
        ...

    def frequency(self) -> int:
        """Return the counter frequency in ticks per second."""
        ...

    def uptime_ms(self) -> int:
        """Return low-resolution system uptime in milliseconds."""
        ...


@runtime_checkable
class WallClockPort(Protocol):
    """The device's raw (unsynchronised) UTC wall clock."""

    def now_millis(self) -> int:
        """Return Unix epoch milliseconds according to the device."""
        ...


class SystemMonotonicClock:
    """Production counter backed by ``time.perf_counter_ns()``.

    Satisfies :class:`MonotonicClockPort` via structural subtyping.
    The counter runs at nanosecond frequency.
    """

    def now(self) -> int:
        """Return the performance counter in nanoseconds."""
        return time.perf_counter_ns()

    def frequency(self) -> int:
        """Nanosecond ticks per second."""
        return _NS_PER_S

    def uptime_ms(self) -> int:
        """Return ``time.monotonic_ns()`` truncated to milliseconds."""
        return time.monotonic_ns() // _NS_PER_MS


class SystemWallClock:
    """Production wall clock wrapping ``time.time_ns()``."""

    def now_millis(self) -> int:
        """Return the system UTC time in Unix milliseconds."""
        return time.time_ns() // _NS_PER_MS
