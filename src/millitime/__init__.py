"""millitime.

A UTC millisecond clock that runs on device time and corrects itself
against a network time server when permitted.
"""

from importlib.metadata import PackageNotFoundError, version

from millitime._clock import (
    MonotonicClockPort,
    SystemMonotonicClock,
    SystemWallClock,
    WallClockPort,
)
from millitime._context import Clock, get_clock
from millitime._dispatch import BackgroundDispatcher, Dispatcher
from millitime._errors import FailureReason, SyncOutcome, SyncStatus
from millitime._events import SyncCallback, SyncEvent, TransitionNotifier
from millitime._logging import JsonFormatter, configure_logging
from millitime._network import (
    DatagramPort,
    NetworkMonitorPort,
    PollableNetworkMonitor,
    ResolverPort,
    SystemNetworkMonitor,
    SystemResolver,
    TransportFactory,
    UdpDatagram,
)
from millitime._ntp import FALLBACK_SERVER, NTP_PORT
from millitime._settings import LoggingSettings, NtpSettings, Settings
from millitime._status import ClockStatus

try:
    __version__ = version("millitime")
except PackageNotFoundError:
    # Source checkouts without installed metadata
    __version__ = "0.0.0+unknown"

__all__ = [
    # Version
    "__version__",
    # Clock
    "Clock",
    "ClockStatus",
    "get_clock",
    "FALLBACK_SERVER",
    "NTP_PORT",
    # Clock ports
    "MonotonicClockPort",
    "SystemMonotonicClock",
    "SystemWallClock",
    "WallClockPort",
    # Network ports
    "DatagramPort",
    "NetworkMonitorPort",
    "PollableNetworkMonitor",
    "ResolverPort",
    "SystemNetworkMonitor",
    "SystemResolver",
    "TransportFactory",
    "UdpDatagram",
    # Dispatch
    "BackgroundDispatcher",
    "Dispatcher",
    # Events
    "SyncCallback",
    "SyncEvent",
    "TransitionNotifier",
    # Outcomes
    "FailureReason",
    "SyncOutcome",
    "SyncStatus",
    # Logging
    "JsonFormatter",
    "configure_logging",
    # Settings
    "LoggingSettings",
    "NtpSettings",
    "Settings",
]
