"""Uptime tracking and the time base behind ``Clock.now``.

``now = device_boot_time + uptime`` where ``uptime`` is measured on the
monotonic counter relative to a baseline captured at
:meth:`TimeBase.initialize`.  The boot-time estimate and the baseline
live together in one immutable :class:`_Anchor`, replaced by a single
reference assignment, so a reader never pairs a new boot time with an
old baseline (or the reverse).

Between re-initialisations ``now`` is non-decreasing: it only moves
when the counter moves.
"""

from __future__ import annotations

from dataclasses import dataclass

from millitime._clock import MonotonicClockPort, WallClockPort


@dataclass(frozen=True, slots=True)
class MonotonicBaseline:
    """Counter reading, its frequency, and the uptime snapshot taken with it."""

    counter: int
    frequency: int
    uptime_ms: int

    def uptime_at(self, counter: int) -> int:
        """High-resolution uptime in ms for a later *counter* reading."""
        return self.uptime_ms + (counter - self.counter) * 1000 // self.frequency


@dataclass(frozen=True, slots=True)
class _Anchor:
    device_boot_time: int
    baseline: MonotonicBaseline


class TimeBase:
    """Boot-time estimate plus uptime, and the sync results stored with them.

    Args:
        monotonic: Counter and low-resolution uptime source.
        wall: The device's raw UTC clock.
    """

    def __init__(self, monotonic: MonotonicClockPort, wall: WallClockPort) -> None:
        self._monotonic = monotonic
        self._wall = wall
        self._anchor = _Anchor(0, MonotonicBaseline(0, 1, 0))
        self.synchronized = False
        self.skew_ms = 0

    # -- Reads --------------------------------------------------------------

    @property
    def device_boot_time(self) -> int:
        return self._anchor.device_boot_time

    @property
    def baseline(self) -> MonotonicBaseline:
        return self._anchor.baseline

    @property
    def initialized(self) -> bool:
        return self._anchor.device_boot_time != 0

    def uptime(self) -> int:
        """Milliseconds since boot, at counter resolution."""
        return self._anchor.baseline.uptime_at(self._monotonic.now())

    def now(self) -> int:
        """Current estimated UTC milliseconds."""
        anchor = self._anchor
        uptime = anchor.baseline.uptime_at(self._monotonic.now())
        return anchor.device_boot_time + uptime

    def device_utc_now(self) -> int:
        """Direct read of the raw device wall clock."""
        return self._wall.now_millis()

    # -- Mutations ----------------------------------------------------------

    def initialize(self) -> None:
        """Re-estimate boot time from the wall clock and recapture the baseline.

        Clears the sync result: after this call ``synchronized`` is
        ``False`` and ``skew_ms`` is 0.
        """
        uptime_ms = self._monotonic.uptime_ms()
        device_boot_time = self._wall.now_millis() - uptime_ms
        self.synchronized = False
        self.skew_ms = 0
        baseline = MonotonicBaseline(
            counter=self._monotonic.now(),
            frequency=self._monotonic.frequency(),
            uptime_ms=uptime_ms,
        )
        self._anchor = _Anchor(device_boot_time, baseline)

    def apply_server_time(self, server_time_ms: int, *, complete: bool) -> None:
        """Rebase on a server time observed just now.

        Keeps the current baseline and moves only the boot-time
        estimate, then records the skew against a fresh wall-clock read.

        Args:
            server_time_ms: Server time in Unix ms at the moment of reception.
            complete: Whether every network step of the exchange finished.
        """
        anchor = self._anchor
        uptime = anchor.baseline.uptime_at(self._monotonic.now())
        self._anchor = _Anchor(server_time_ms - uptime, anchor.baseline)
        self.skew_ms = server_time_ms - self._wall.now_millis()
        self.synchronized = complete
