"""Single-flight NTP synchronizer.

One attempt walks these states::

    Idle → Resolving → Connecting → Sending → Receiving → Computing
         → {Synced | Failed} → Idle

Entry is guarded by a non-blocking lock acquisition: if an attempt is
already alive the new request is dropped on the spot (no queue, no
retry).  The guard is a :class:`threading.Lock`, so it holds across
tasks on one loop and across threads running separate loops.

Every attempt re-initialises the time base first, even one that later
fails; the clock then runs on device time until a reply is applied.
All failures are absorbed here and reported as a :class:`SyncOutcome`;
nothing propagates to the caller.

Timing: the *round-trip* stopwatch spans connect → receive and half of
it is added to the server timestamp as the one-way delay.  The
*latency* stopwatch spans the whole attempt and is reported in the
:class:`SyncEvent`.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field

from millitime._clock import MonotonicClockPort
from millitime._errors import (
    FailureReason,
    SyncError,
    SyncOutcome,
    SyncStatus,
    classify_failure,
)
from millitime._events import SyncEvent, TransitionNotifier
from millitime._network import DatagramPort, ResolverPort, TransportFactory
from millitime._ntp import (
    NTP_PORT,
    decode_transmit_timestamp,
    new_buffer,
    to_unix_millis,
)
from millitime._timebase import TimeBase

logger = logging.getLogger(__name__)

STAGE_COUNT = 3
"""Network steps of a complete exchange: connect, send, receive."""

_CLIENT_HEADER = 0x1B
"""LI=0, VN=3, Mode=3 (client); the remaining 47 bytes stay zero."""

# ---------------------------------------------------------------------------
# Attempt state
# ---------------------------------------------------------------------------


@dataclass
class Stopwatch:
    """Elapsed-time measurement on the monotonic counter."""

    clock: MonotonicClockPort
    _start: int = field(init=False, repr=False)
    _stop: int | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self._start = self.clock.now()

    def stop(self) -> None:
        if self._stop is None:
            self._stop = self.clock.now()

    @property
    def elapsed_ms(self) -> int:
        end = self._stop if self._stop is not None else self.clock.now()
        return (end - self._start) * 1000 // self.clock.frequency()


@dataclass
class SyncAttempt:
    """Transient state of the one in-flight attempt."""

    server: str
    prior_synchronized: bool
    latency: Stopwatch
    buffer: bytearray = field(default_factory=new_buffer, repr=False)
    stages: int = 0
    round_trip: Stopwatch | None = field(default=None, repr=False)
    transport: DatagramPort | None = field(default=None, repr=False)

    def close(self) -> None:
        """Release the socket and stop both timers."""
        if self.transport is not None:
            self.transport.close()
            self.transport = None
        if self.round_trip is not None:
            self.round_trip.stop()
        self.latency.stop()


# ---------------------------------------------------------------------------
# Synchronizer
# ---------------------------------------------------------------------------


class NtpSynchronizer:
    """Owns the single in-flight attempt and applies its result.

    Args:
        timebase: Time base to re-initialise and rebase.
        monotonic: Counter used for both stopwatches.
        resolver: DNS lookup.
        transport_factory: Opens a fresh datagram transport per attempt.
        notifier: Receives the unsynced → synced transition.
        indicated: Live availability gate, re-checked after
            re-initialisation.
    """

    def __init__(
        self,
        *,
        timebase: TimeBase,
        monotonic: MonotonicClockPort,
        resolver: ResolverPort,
        transport_factory: TransportFactory,
        notifier: TransitionNotifier,
        indicated: Callable[[], bool],
    ) -> None:
        self._timebase = timebase
        self._monotonic = monotonic
        self._resolver = resolver
        self._transport_factory = transport_factory
        self._notifier = notifier
        self._indicated = indicated
        self._in_flight = threading.Lock()

    @property
    def in_flight(self) -> bool:
        """True while an attempt holds the single-flight guard."""
        return self._in_flight.locked()

    async def attempt(self, server: str) -> SyncOutcome:
        """Run one attempt against *server* unless another is alive."""
        if not self._in_flight.acquire(blocking=False):
            logger.debug("Sync attempt to %s dropped: one is in flight", server)
            return SyncOutcome(SyncStatus.DROPPED, server)

        attempt = SyncAttempt(
            server=server,
            prior_synchronized=self._timebase.synchronized,
            latency=Stopwatch(self._monotonic),
        )
        try:
            return await self._run(attempt)
        finally:
            attempt.close()
            self._in_flight.release()

    async def _run(self, attempt: SyncAttempt) -> SyncOutcome:
        self._timebase.initialize()
        try:
            if not (self._timebase.initialized and self._indicated()):
                logger.debug("Sync to %s skipped: not indicated", attempt.server)
                return SyncOutcome(SyncStatus.SKIPPED, attempt.server)
            address = await self._resolve(attempt.server)
            server_time = await self._exchange(attempt, address)
        except Exception as exc:
            reason = classify_failure(exc, stages_completed=attempt.stages)
            return self._fail(attempt, reason, exc)

        if server_time <= 0:
            return self._fail(attempt, FailureReason.NON_POSITIVE_TIME)

        self._timebase.apply_server_time(
            server_time,
            complete=attempt.stages == STAGE_COUNT,
        )
        attempt.latency.stop()
        if not self._timebase.synchronized:
            return self._fail(attempt, FailureReason.INCOMPLETE)

        latency_ms = attempt.latency.elapsed_ms
        skew_ms = self._timebase.skew_ms
        logger.info(
            "Synchronised with %s: skew %d ms, latency %d ms",
            attempt.server,
            skew_ms,
            latency_ms,
            extra={
                "server": attempt.server,
                "skew_ms": skew_ms,
                "latency_ms": latency_ms,
            },
        )
        if not attempt.prior_synchronized:
            self._notifier.emit(SyncEvent(attempt.server, latency_ms, skew_ms))
        return SyncOutcome(
            SyncStatus.SYNCED,
            attempt.server,
            stages=attempt.stages,
            latency_ms=latency_ms,
            skew_ms=skew_ms,
        )

    async def _resolve(self, server: str) -> str:
        try:
            return await self._resolver.lookup(server)
        except OSError as exc:
            message = f"cannot resolve {server}: {exc}"
            raise SyncError(FailureReason.DNS, message) from exc

    async def _exchange(self, attempt: SyncAttempt, address: str) -> int:
        """Connect, send, receive; return server time in Unix ms at reception."""
        transport = attempt.transport = self._transport_factory()
        attempt.buffer[0] = _CLIENT_HEADER
        attempt.round_trip = Stopwatch(self._monotonic)

        await transport.connect(address, NTP_PORT)
        attempt.stages += 1
        logger.debug("Connected to %s (%s)", attempt.server, address)

        await transport.send(attempt.buffer)
        attempt.stages += 1

        received = await transport.receive_into(attempt.buffer)
        attempt.stages += 1
        attempt.round_trip.stop()

        half_round_trip = attempt.round_trip.elapsed_ms // 2
        ntp_millis = decode_transmit_timestamp(attempt.buffer, received)
        return to_unix_millis(ntp_millis, half_round_trip)

    def _fail(
        self,
        attempt: SyncAttempt,
        reason: FailureReason,
        error: BaseException | None = None,
    ) -> SyncOutcome:
        self._timebase.synchronized = False
        attempt.latency.stop()
        logger.info(
            "Sync attempt to %s failed (%s)%s",
            attempt.server,
            reason.value,
            f": {error}" if error is not None else "",
            extra={"server": attempt.server, "reason": reason.value},
        )
        return SyncOutcome(
            SyncStatus.FAILED,
            attempt.server,
            reason=reason,
            stages=attempt.stages,
            latency_ms=attempt.latency.elapsed_ms,
        )
