"""Sync-attempt failure classification and outcomes.

Every way a sync attempt can go wrong (DNS, connect, send, receive,
timeout, malformed reply, non-positive time) is one failure class at
the public boundary: ``Clock.synchronized`` stays or becomes ``False``
and nothing is raised.  Inside the synchronizer the attempt still ends
in a structured :class:`SyncOutcome` so the cause can be logged and
tested.

Exception classes are mapped to machine-readable reasons through an
exact-type lookup table, falling back to the reason of the stage that
was running when the exception surfaced.

Outcome schema (``SyncOutcome.to_json()``)::

    {
        "status": "failed",
        "server": "pool.ntp.org",
        "reason": "timeout",
        "stages": 2,
        "latency_ms": 3004,
        "skew_ms": null
    }
"""

from __future__ import annotations

import enum
import json
import socket
from dataclasses import asdict, dataclass

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class SyncStatus(enum.StrEnum):
    """How a sync attempt ended."""

    SYNCED = "synced"
    FAILED = "failed"
    SKIPPED = "skipped"
    """The gate was closed once the attempt re-initialised the time base."""
    DROPPED = "dropped"
    """Another attempt was already in flight."""


class FailureReason(enum.StrEnum):
    """Machine-readable cause of a failed attempt."""

    DNS = "dns"
    CONNECT = "connect"
    SEND = "send"
    RECEIVE = "receive"
    TIMEOUT = "timeout"
    MALFORMED_REPLY = "malformed_reply"
    NON_POSITIVE_TIME = "non_positive_time"
    INCOMPLETE = "incomplete"
    UNEXPECTED = "unexpected"


class SyncError(Exception):
    """Failure raised inside the synchronizer; never leaves it."""

    def __init__(self, reason: FailureReason, message: str = "") -> None:
        super().__init__(message or reason.value)
        self.reason = reason


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

_STAGE_REASONS: tuple[FailureReason, ...] = (
    FailureReason.CONNECT,
    FailureReason.SEND,
    FailureReason.RECEIVE,
)

DEFAULT_FAILURE_MAP: dict[type[BaseException], FailureReason] = {
    socket.gaierror: FailureReason.DNS,
    TimeoutError: FailureReason.TIMEOUT,
}


def classify_failure(
    error: BaseException,
    *,
    stages_completed: int,
    failure_map: dict[type[BaseException], FailureReason] | None = None,
) -> FailureReason:
    """Map an exception raised during an attempt to a :class:`FailureReason`.

    Looks up the exact class of the exception; subclasses are not
    matched.  :class:`SyncError` carries its own reason.  Any other
    :class:`OSError` is attributed to the network step that was in
    progress, derived from *stages_completed*.

    Args:
        error: The exception to classify.
        stages_completed: Network steps (connect, send, receive) that
            finished before the failure.
        failure_map: Optional override of :data:`DEFAULT_FAILURE_MAP`.
    """
    if isinstance(error, SyncError):
        return error.reason
    resolved_map = failure_map if failure_map is not None else DEFAULT_FAILURE_MAP
    reason = resolved_map.get(type(error))
    if reason is not None:
        return reason
    if isinstance(error, OSError) and stages_completed < len(_STAGE_REASONS):
        return _STAGE_REASONS[stages_completed]
    return FailureReason.UNEXPECTED


# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SyncOutcome:
    """Immutable record of how one sync attempt ended."""

    status: SyncStatus
    server: str
    reason: FailureReason | None = None
    stages: int = 0
    latency_ms: int | None = None
    skew_ms: int | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is SyncStatus.SYNCED

    def to_dict(self) -> dict[str, object]:
        """Serialise to a plain dictionary with string enum values."""
        data = asdict(self)
        data["status"] = self.status.value
        data["reason"] = self.reason.value if self.reason is not None else None
        return data

    def to_json(self) -> str:
        """Serialise to a JSON string."""
        return json.dumps(self.to_dict())
