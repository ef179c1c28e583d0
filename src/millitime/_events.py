"""Synchronisation-transition notification.

A :class:`SyncEvent` is emitted once when the clock goes from
unsynchronised to synchronised.  Delivery is synchronous and inline,
in whatever thread or task completed the attempt, in subscription
order.

A subscriber that raises is logged and skipped; it does not stop
delivery to the others and does not undo the synchronisation.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass, field

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SyncEvent:
    """The clock has just become synchronised.

    Attributes:
        server: Hostname the time was obtained from.
        latency_ms: Total duration of the attempt.
        skew_ms: Synchronised time minus the raw device clock.
    """

    server: str
    latency_ms: int
    skew_ms: int

    def to_json(self) -> str:
        """Serialise to a JSON string."""
        return json.dumps(asdict(self))


SyncCallback = Callable[[SyncEvent], None]
"""Subscriber invoked with each :class:`SyncEvent`."""

# ---------------------------------------------------------------------------
# Notifier
# ---------------------------------------------------------------------------


@dataclass
class TransitionNotifier:
    """Ordered subscriber list for :class:`SyncEvent`."""

    _callbacks: list[SyncCallback] = field(
        default_factory=list,
        init=False,
        repr=False,
    )

    def subscribe(self, callback: SyncCallback) -> Callable[[], None]:
        """Register *callback* and return a function that unregisters it."""
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._callbacks)

    def emit(self, event: SyncEvent) -> None:
        """Deliver *event* to every subscriber, isolating failures."""
        for callback in list(self._callbacks):
            try:
                callback(event)
            except Exception:
                logger.exception("Sync event subscriber %r failed", callback)
