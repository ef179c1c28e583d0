"""Unit tests for millitime._timebase — uptime tracking and now().

Test Techniques Used:
    - Specification-based Testing: Boot-time and skew formulas
    - State-based Testing: Flags after initialize / apply
    - Property-based Reasoning: now() non-decreasing between
      re-initialisations
"""

from __future__ import annotations

import pytest

from millitime._timebase import MonotonicBaseline, TimeBase
from millitime.testing import FakeMonotonicClock, FakeWallClock


@pytest.fixture
def timebase(fake_monotonic: FakeMonotonicClock, fake_wall: FakeWallClock) -> TimeBase:
    return TimeBase(fake_monotonic, fake_wall)


class TestMonotonicBaseline:
    """MonotonicBaseline.uptime_at() tests."""

    def test_same_counter_returns_snapshot(self) -> None:
        baseline = MonotonicBaseline(counter=500, frequency=1000, uptime_ms=42)
        assert baseline.uptime_at(500) == 42

    def test_adds_counter_delta_in_ms(self) -> None:
        baseline = MonotonicBaseline(counter=0, frequency=1_000_000, uptime_ms=10)
        assert baseline.uptime_at(2_500_000) == 2_510

    def test_truncates_sub_millisecond(self) -> None:
        baseline = MonotonicBaseline(counter=0, frequency=1_000_000, uptime_ms=0)
        assert baseline.uptime_at(999) == 0


class TestInitialize:
    """TimeBase.initialize() tests.

    Technique: Specification-based Testing — boot = wall − uptime.
    """

    def test_uninitialised_before_first_call(self, timebase: TimeBase) -> None:
        assert not timebase.initialized
        assert timebase.device_boot_time == 0

    def test_boot_time_is_wall_minus_uptime(
        self,
        timebase: TimeBase,
        fake_wall: FakeWallClock,
        fake_monotonic: FakeMonotonicClock,
    ) -> None:
        timebase.initialize()

        assert timebase.initialized
        assert timebase.device_boot_time == fake_wall.millis - fake_monotonic.uptime

    def test_now_equals_wall_clock_right_after(
        self, timebase: TimeBase, fake_wall: FakeWallClock
    ) -> None:
        timebase.initialize()
        assert timebase.now() == fake_wall.millis

    def test_clears_sync_state(self, timebase: TimeBase) -> None:
        timebase.initialize()
        timebase.apply_server_time(1_700_000_005_000, complete=True)

        timebase.initialize()

        assert timebase.synchronized is False
        assert timebase.skew_ms == 0

    def test_captures_baseline(
        self, timebase: TimeBase, fake_monotonic: FakeMonotonicClock
    ) -> None:
        fake_monotonic.ticks = 123_000
        timebase.initialize()
        assert timebase.baseline == MonotonicBaseline(
            counter=123_000,
            frequency=fake_monotonic.ticks_per_second,
            uptime_ms=fake_monotonic.uptime,
        )


class TestNow:
    """TimeBase.now() and uptime() tests."""

    def test_advances_with_counter_only(
        self,
        timebase: TimeBase,
        fake_monotonic: FakeMonotonicClock,
        fake_wall: FakeWallClock,
    ) -> None:
        """Wall-clock jumps do not move now(); the counter does."""
        timebase.initialize()
        start = timebase.now()

        fake_wall.advance(-50_000)
        assert timebase.now() == start

        fake_monotonic.advance(250)
        assert timebase.now() == start + 250

    def test_non_decreasing(
        self, timebase: TimeBase, fake_monotonic: FakeMonotonicClock
    ) -> None:
        """Property: readings never decrease between re-initialisations."""
        timebase.initialize()
        previous = timebase.now()
        for step in [0, 1, 7, 0, 1000, 3]:
            fake_monotonic.advance(step)
            current = timebase.now()
            assert current >= previous
            previous = current

    def test_uptime_tracks_counter(
        self, timebase: TimeBase, fake_monotonic: FakeMonotonicClock
    ) -> None:
        timebase.initialize()
        fake_monotonic.advance(1_500)
        assert timebase.uptime() == 61_500

    def test_device_utc_now_reads_wall(
        self, timebase: TimeBase, fake_wall: FakeWallClock
    ) -> None:
        fake_wall.millis = 5
        assert timebase.device_utc_now() == 5


class TestApplyServerTime:
    """TimeBase.apply_server_time() tests.

    Technique: Specification-based Testing — boot = server − uptime,
    skew = server − wall.
    """

    def test_rebases_now_on_server_time(
        self, timebase: TimeBase, fake_monotonic: FakeMonotonicClock
    ) -> None:
        timebase.initialize()
        fake_monotonic.advance(10)

        timebase.apply_server_time(1_700_000_009_000, complete=True)

        assert timebase.now() == 1_700_000_009_000
        assert timebase.device_boot_time == 1_700_000_009_000 - timebase.uptime()

    def test_keeps_baseline(self, timebase: TimeBase) -> None:
        timebase.initialize()
        baseline = timebase.baseline
        timebase.apply_server_time(1_700_000_009_000, complete=True)
        assert timebase.baseline is baseline

    def test_skew_against_fresh_wall_read(
        self, timebase: TimeBase, fake_wall: FakeWallClock
    ) -> None:
        timebase.initialize()
        fake_wall.advance(40)

        timebase.apply_server_time(fake_wall.millis + 1_000, complete=True)

        assert timebase.skew_ms == 1_000

    def test_negative_skew(self, timebase: TimeBase, fake_wall: FakeWallClock) -> None:
        timebase.initialize()
        timebase.apply_server_time(fake_wall.millis - 250, complete=True)
        assert timebase.skew_ms == -250

    @pytest.mark.parametrize("complete", [True, False])
    def test_synchronized_follows_completeness(
        self, timebase: TimeBase, complete: bool
    ) -> None:
        timebase.initialize()
        timebase.apply_server_time(1_700_000_009_000, complete=complete)
        assert timebase.synchronized is complete
