"""Public test-support utilities for millitime.

Re-exports test doubles and factories so that consumer test suites
can import everything from a single ``millitime.testing`` namespace
instead of reaching into private modules.

Provided symbols:

- :class:`ClockHarness` — a Clock wired to every fake below.
- :class:`FakeMonotonicClock`, :class:`FakeWallClock` — deterministic clocks.
- :class:`FakeResolver` — scripted DNS lookups.
- :class:`MockTransportFactory`, :class:`MockDatagram` — recording UDP doubles.
- :class:`StaticNetworkMonitor` — test-controlled reachability.
- :class:`RecordingDispatcher` — captures fire-and-forget dispatches.
- :func:`build_reply`, :func:`build_reply_for_unix_ms` — NTP reply builders.
- :func:`make_settings` — ``Settings`` without ``.env`` files.
"""

from millitime.testing._clock import FakeMonotonicClock, FakeWallClock
from millitime.testing._dispatch import RecordingDispatcher
from millitime.testing._harness import ClockHarness
from millitime.testing._network import (
    FakeResolver,
    MockDatagram,
    MockTransportFactory,
    StaticNetworkMonitor,
    build_reply,
    build_reply_for_unix_ms,
)
from millitime.testing._settings import make_settings

__all__ = [
    "ClockHarness",
    "FakeMonotonicClock",
    "FakeResolver",
    "FakeWallClock",
    "MockDatagram",
    "MockTransportFactory",
    "RecordingDispatcher",
    "StaticNetworkMonitor",
    "build_reply",
    "build_reply_for_unix_ms",
    "make_settings",
]
