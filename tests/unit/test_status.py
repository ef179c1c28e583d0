"""Unit tests for millitime._status — clock status snapshots.

Test Techniques Used:
    - Specification-based Testing: Payload schema and ISO rendering
    - State-based Testing: Snapshot before and after synchronisation
    - Boundary Value Analysis: Millisecond rendering at the epoch
"""

from __future__ import annotations

import json
from dataclasses import FrozenInstanceError

import pytest

from millitime._status import ClockStatus
from millitime.testing import ClockHarness

WALL = 1_700_000_000_000


def _status(now_ms: int) -> ClockStatus:
    return ClockStatus(
        now_ms=now_ms,
        synchronized=False,
        skew_ms=None,
        device_boot_time_ms=0,
        device_uptime_ms=0,
        device_utc_now_ms=now_ms,
        default_server="pool.ntp.org",
        suppress_network_calls=True,
    )


class TestNowIso:
    """ISO 8601 rendering of ``now_ms``."""

    def test_epoch(self) -> None:
        assert _status(0).now_iso == "1970-01-01T00:00:00.000+00:00"

    def test_keeps_milliseconds_exactly(self) -> None:
        assert _status(WALL + 1).now_iso == "2023-11-14T22:13:20.001+00:00"


class TestCapture:
    """ClockStatus.capture() reads the clock.

    Technique: State-based Testing.
    """

    def test_unsynchronised_skew_is_null(self) -> None:
        harness = ClockHarness.create()

        status = harness.clock.status()

        assert status.synchronized is False
        assert status.skew_ms is None
        assert status.now_ms == WALL
        assert status.device_uptime_ms == 60_000
        assert status.device_boot_time_ms == WALL - 60_000
        assert status.suppress_network_calls is True

    async def test_synchronised_reports_skew(self) -> None:
        harness = ClockHarness.create(suppress_network_calls=False)
        await harness.run_pending()

        status = harness.clock.status()

        assert status.synchronized is True
        assert status.skew_ms == 1_234
        assert status.now_ms == WALL + 1_234
        assert status.device_utc_now_ms == WALL


class TestSerialisation:
    """to_dict() / to_json() schema."""

    def test_to_json_keys(self) -> None:
        payload = json.loads(ClockHarness.create().clock.status().to_json())
        assert set(payload) == {
            "now_ms",
            "now_iso",
            "synchronized",
            "skew_ms",
            "device_boot_time_ms",
            "device_uptime_ms",
            "device_utc_now_ms",
            "default_server",
            "suppress_network_calls",
        }
        assert payload["skew_ms"] is None

    def test_frozen(self) -> None:
        status = _status(0)
        with pytest.raises(FrozenInstanceError):
            status.now_ms = 1  # type: ignore[misc]
