"""The clock context object and the process-wide default instance.

:class:`Clock` wires the time base, availability gate, synchronizer
and transition notifier together behind the public surface
(``now``, ``synchronized``, ``skew``, ``suppress_network_calls``,
``default_server``, ``self_update``, ``on_synchronized``).

Construct one explicitly and pass it to consumers, or use
:func:`get_clock` for the lazily created process default.  All
collaborators are injectable so tests run without real time or
network.

The trigger sites (construction, a network-reachability change, and a
change of ``suppress_network_calls``) consult the gate and, when it is
open, *dispatch* an attempt without waiting for it.  Callers learn the
result by polling ``synchronized`` / ``skew`` or by subscribing with
:meth:`Clock.on_synchronized`; the triggers themselves return nothing.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from millitime._clock import (
    MonotonicClockPort,
    SystemMonotonicClock,
    SystemWallClock,
    WallClockPort,
)
from millitime._dispatch import BackgroundDispatcher, Dispatcher
from millitime._events import SyncCallback, TransitionNotifier
from millitime._gate import sync_indicated
from millitime._network import (
    NetworkMonitorPort,
    ResolverPort,
    SystemNetworkMonitor,
    SystemResolver,
    TransportFactory,
    UdpDatagram,
)
from millitime._ntp import FALLBACK_SERVER
from millitime._settings import Settings
from millitime._status import ClockStatus
from millitime._sync import NtpSynchronizer
from millitime._timebase import TimeBase

logger = logging.getLogger(__name__)


class Clock:
    """UTC millisecond clock, opportunistically corrected over NTP.

    Args:
        settings: Initial default server and suppression flag.
            Defaults to :class:`Settings` loaded from the environment.
        monotonic: Counter for uptime and stopwatches.
        wall: Raw device UTC clock.
        resolver: DNS lookup.
        network: Reachability monitor; the clock subscribes to its
            change notifications.
        transport_factory: Opens one datagram transport per attempt.
        dispatcher: Starts attempts in the background.
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        monotonic: MonotonicClockPort | None = None,
        wall: WallClockPort | None = None,
        resolver: ResolverPort | None = None,
        network: NetworkMonitorPort | None = None,
        transport_factory: TransportFactory | None = None,
        dispatcher: Dispatcher | None = None,
    ) -> None:
        settings = settings if settings is not None else Settings()
        monotonic = monotonic if monotonic is not None else SystemMonotonicClock()

        self._suppress_network_calls = settings.ntp.suppress_network_calls
        self._default_server = settings.ntp.default_server
        self._network = (
            network
            if network is not None
            else SystemNetworkMonitor(interval=settings.ntp.network_poll_interval)
        )
        self._dispatch = (
            dispatcher if dispatcher is not None else BackgroundDispatcher()
        )
        self._timebase = TimeBase(
            monotonic,
            wall if wall is not None else SystemWallClock(),
        )
        self._notifier = TransitionNotifier()
        self._synchronizer = NtpSynchronizer(
            timebase=self._timebase,
            monotonic=monotonic,
            resolver=resolver if resolver is not None else SystemResolver(),
            transport_factory=(
                transport_factory if transport_factory is not None else UdpDatagram
            ),
            notifier=self._notifier,
            indicated=lambda: self.indicated,
        )

        self._network.on_change(self._on_network_change)
        self._timebase.initialize()
        self._dispatch_if_indicated("construction")

    # -- Reads --------------------------------------------------------------

    @property
    def now(self) -> int:
        """Current estimated UTC time in Unix milliseconds."""
        return self._timebase.now()

    @property
    def synchronized(self) -> bool:
        """True once an attempt succeeded since the last re-initialisation."""
        return self._timebase.synchronized

    @property
    def skew(self) -> int:
        """Synchronised time minus raw device time, in ms.

        Only meaningful while :attr:`synchronized` is true.
        """
        return self._timebase.skew_ms

    @property
    def initialized(self) -> bool:
        return self._timebase.initialized

    @property
    def device_boot_time(self) -> int:
        """Estimated Unix ms at which the device booted."""
        return self._timebase.device_boot_time

    @property
    def device_uptime(self) -> int:
        """High-resolution milliseconds since boot."""
        return self._timebase.uptime()

    @property
    def device_utc_now(self) -> int:
        """Raw read of the device wall clock, uncorrected."""
        return self._timebase.device_utc_now()

    @property
    def indicated(self) -> bool:
        """Live availability gate: would an attempt be warranted now?"""
        return sync_indicated(
            suppress_network_calls=self._suppress_network_calls,
            synchronized=self._timebase.synchronized,
            network_reachable=self._network.is_reachable,
        )

    @property
    def sync_in_flight(self) -> bool:
        return self._synchronizer.in_flight

    @property
    def network(self) -> NetworkMonitorPort:
        """The reachability monitor this clock listens to."""
        return self._network

    # -- Configuration ------------------------------------------------------

    @property
    def suppress_network_calls(self) -> bool:
        """While true the clock never touches the network.

        Setting it to ``False`` is the permission grant: if the gate
        opens as a result, an attempt is dispatched.
        """
        return self._suppress_network_calls

    @suppress_network_calls.setter
    def suppress_network_calls(self, value: bool) -> None:
        if value == self._suppress_network_calls:
            return
        self._suppress_network_calls = value
        self._dispatch_if_indicated("suppression lifted" if not value else "suppressed")

    @property
    def default_server(self) -> str:
        """Hostname used when :meth:`self_update` is called without one."""
        return self._default_server

    @default_server.setter
    def default_server(self, value: str) -> None:
        self._default_server = value

    # -- Synchronisation ----------------------------------------------------

    def on_synchronized(self, callback: SyncCallback) -> Callable[[], None]:
        """Subscribe to the unsynced → synced transition.

        The callback runs inline in the context that completed the
        attempt.  Returns a function that removes the subscription.
        """
        return self._notifier.subscribe(callback)

    async def self_update(self, server: str | None = None) -> None:
        """Run one sync attempt now, subject to the single-flight guard.

        Never raises for a failed attempt; inspect :attr:`synchronized`
        afterwards.

        Args:
            server: Hostname to query.  Falls back to
                :attr:`default_server`, then to the built-in pool.
        """
        await self._synchronizer.attempt(self._resolve_server(server))

    def status(self) -> ClockStatus:
        """Snapshot of the clock for reporting."""
        return ClockStatus.capture(self)

    def _resolve_server(self, server: str | None) -> str:
        return server or self._default_server or FALLBACK_SERVER

    def _on_network_change(self, reachable: bool) -> None:
        if reachable:
            self._dispatch_if_indicated("network available")

    def _dispatch_if_indicated(self, trigger: str) -> None:
        if self.indicated:
            logger.debug("Dispatching sync attempt (%s)", trigger)
            self._dispatch(self.self_update)


# ---------------------------------------------------------------------------
# Process default
# ---------------------------------------------------------------------------

_default_clock: Clock | None = None
_default_lock = threading.Lock()


def get_clock() -> Clock:
    """Return the process-wide :class:`Clock`, creating it on first use.

    Creation happens exactly once even under concurrent first access.
    """
    global _default_clock
    if _default_clock is None:
        with _default_lock:
            if _default_clock is None:
                _default_clock = Clock()
    return _default_clock
