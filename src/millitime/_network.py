"""Network ports and system adapters.

Provides three Protocol ports used by the synchronizer and the clock:

- :class:`ResolverPort` — hostname → IPv4 address (``SystemResolver``)
- :class:`DatagramPort` — one connected UDP exchange (``UdpDatagram``)
- :class:`NetworkMonitorPort` — reachability plus change callbacks
  (``SystemNetworkMonitor``, which is also a
  :class:`PollableNetworkMonitor`)

Design decisions:

- Socket work goes through the running event loop
  (``loop.sock_connect`` / ``sock_sendall`` / ``sock_recv_into``) on a
  non-blocking socket, so an attempt never blocks the loop it runs on.
- The receive timeout is enforced with ``asyncio.wait_for``; it is the
  only bound on how long an attempt can take once connected.
- The standard library has no portable network-change notification.
  ``SystemNetworkMonitor`` therefore *polls*: :meth:`poll` compares
  the current reachability with the last observation and fires the
  registered callbacks on a change.  Once a callback is registered a
  daemon thread polls on a fixed interval, so the clock notices a
  returning network without any help from its owner.  Callbacks
  therefore run on that thread.
"""

from __future__ import annotations

import asyncio
import logging
import socket
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from millitime._ntp import NTP_PORT, RECEIVE_TIMEOUT_S

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Type aliases
# ---------------------------------------------------------------------------

NetworkCallback = Callable[[bool], None]
"""Callback receiving the new reachability after a change."""

# ---------------------------------------------------------------------------
# Ports (Protocol)
# ---------------------------------------------------------------------------


@runtime_checkable
class ResolverPort(Protocol):
    """Resolves a hostname to one address."""

    async def lookup(self, hostname: str) -> str: ...


@runtime_checkable
class DatagramPort(Protocol):
    """A single UDP conversation with one peer.

    Owned exclusively by the attempt that opened it and closed in that
    attempt's cleanup.
    """

    async def connect(self, address: str, port: int) -> None: ...

    async def send(self, payload: bytes | bytearray) -> int: ...

    async def receive_into(self, buffer: bytearray) -> int: ...

    def close(self) -> None: ...


TransportFactory = Callable[[], DatagramPort]
"""Opens a fresh :class:`DatagramPort` for each attempt."""


@runtime_checkable
class NetworkMonitorPort(Protocol):
    """Live network reachability with change notification."""

    def is_reachable(self) -> bool: ...

    def on_change(self, callback: NetworkCallback) -> None: ...


@runtime_checkable
class PollableNetworkMonitor(NetworkMonitorPort, Protocol):
    """A monitor that detects changes when asked rather than on its own."""

    def poll(self) -> bool: ...


# ---------------------------------------------------------------------------
# System adapters
# ---------------------------------------------------------------------------


class SystemResolver:
    """DNS lookup through ``loop.getaddrinfo`` (IPv4, UDP)."""

    async def lookup(self, hostname: str) -> str:
        """Return the first IPv4 address for *hostname*.

        Raises:
            socket.gaierror: When the name does not resolve.
        """
        loop = asyncio.get_running_loop()
        infos = await loop.getaddrinfo(
            hostname,
            NTP_PORT,
            family=socket.AF_INET,
            type=socket.SOCK_DGRAM,
        )
        if not infos:
            raise socket.gaierror(socket.EAI_NONAME, f"no address for {hostname}")
        return str(infos[0][4][0])


class UdpDatagram:
    """Non-blocking IPv4 UDP socket driven by the running event loop.

    Args:
        timeout: Seconds to wait in :meth:`receive_into` before
            raising :class:`TimeoutError`.
    """

    def __init__(self, timeout: float = RECEIVE_TIMEOUT_S) -> None:
        self._timeout = timeout
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self._sock.setblocking(False)

    async def connect(self, address: str, port: int) -> None:
        loop = asyncio.get_running_loop()
        await loop.sock_connect(self._sock, (address, port))

    async def send(self, payload: bytes | bytearray) -> int:
        loop = asyncio.get_running_loop()
        await loop.sock_sendall(self._sock, payload)
        return len(payload)

    async def receive_into(self, buffer: bytearray) -> int:
        loop = asyncio.get_running_loop()
        return await asyncio.wait_for(
            loop.sock_recv_into(self._sock, buffer),
            timeout=self._timeout,
        )

    def close(self) -> None:
        self._sock.close()


NETWORK_POLL_INTERVAL_S = 5.0
"""Default seconds between background reachability polls."""

_PROBE_ADDRESS = ("192.0.2.1", NTP_PORT)
"""TEST-NET-1; connecting a UDP socket only consults the routing table."""


def _has_route(probe: tuple[str, int] = _PROBE_ADDRESS) -> bool:
    """Return ``True`` when the host has a route towards *probe*.

    Connecting a datagram socket sends nothing; it fails with
    ``ENETUNREACH`` when there is no usable interface or default route.
    """
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(probe)
    except OSError:
        return False
    return True


@dataclass
class SystemNetworkMonitor:
    """Polling reachability monitor based on the routing table.

    Registering the first callback starts a daemon thread that calls
    :meth:`poll` every *interval* seconds until :meth:`stop`.  With
    ``interval=None`` no thread is started and changes are only seen
    when the owner calls :meth:`poll` itself.

    Attributes:
        probe: Function answering "is the network reachable now?".
            Defaults to a routing-table check.
        interval: Seconds between background polls, or ``None``.
    """

    probe: Callable[[], bool] = _has_route
    interval: float | None = NETWORK_POLL_INTERVAL_S
    _callbacks: list[NetworkCallback] = field(
        default_factory=list,
        init=False,
        repr=False,
    )
    _last: bool | None = field(default=None, init=False, repr=False)
    _lock: threading.Lock = field(
        default_factory=threading.Lock,
        init=False,
        repr=False,
    )
    _stopped: threading.Event = field(
        default_factory=threading.Event,
        init=False,
        repr=False,
    )
    _thread: threading.Thread | None = field(default=None, init=False, repr=False)

    def is_reachable(self) -> bool:
        reachable = self.probe()
        with self._lock:
            if self._last is None:
                self._last = reachable
        return reachable

    def on_change(self, callback: NetworkCallback) -> None:
        """Register a callback fired on reachability changes."""
        self._callbacks.append(callback)
        self._start()

    @property
    def running(self) -> bool:
        """True while the background polling thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    def poll(self) -> bool:
        """Re-probe and notify callbacks if reachability changed.

        Returns:
            The current reachability.
        """
        reachable = self.probe()
        with self._lock:
            previous, self._last = self._last, reachable
        if previous is not None and previous != reachable:
            logger.info(
                "Network %s",
                "became reachable" if reachable else "became unreachable",
            )
            for callback in list(self._callbacks):
                callback(reachable)
        return reachable

    def stop(self, timeout: float | None = None) -> None:
        """Stop background polling and wait for the thread to exit."""
        self._stopped.set()
        if self._thread is not None:
            self._thread.join(timeout)

    def _start(self) -> None:
        if self.interval is None or self._thread is not None:
            return
        if self._stopped.is_set():
            return
        # Seed the baseline now so a change before the first tick is seen.
        self.is_reachable()
        self._thread = threading.Thread(
            target=self._watch,
            args=(self.interval,),
            name="millitime-network",
            daemon=True,
        )
        self._thread.start()

    def _watch(self, interval: float) -> None:
        while not self._stopped.wait(interval):
            try:
                self.poll()
            except Exception:
                logger.exception("Network poll failed")
