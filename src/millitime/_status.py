"""Point-in-time status snapshot of a clock.

Status payload schema::

    {
        "now_ms": 1739536496102,
        "now_iso": "2025-02-14T12:34:56.102+00:00",
        "synchronized": true,
        "skew_ms": -41,
        "device_boot_time_ms": 1739450000000,
        "device_uptime_ms": 86496102,
        "device_utc_now_ms": 1739536496143,
        "default_server": "pool.ntp.org",
        "suppress_network_calls": false
    }

``skew_ms`` is reported as ``null`` while the clock is unsynchronised,
since the stored value carries no meaning then.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Self

if TYPE_CHECKING:
    from millitime._context import Clock

_UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


@dataclass(frozen=True, slots=True)
class ClockStatus:
    """Immutable snapshot of the public clock state."""

    now_ms: int
    synchronized: bool
    skew_ms: int | None
    device_boot_time_ms: int
    device_uptime_ms: int
    device_utc_now_ms: int
    default_server: str
    suppress_network_calls: bool

    @classmethod
    def capture(cls, clock: Clock) -> Self:
        """Read every field from *clock* once."""
        synchronized = clock.synchronized
        return cls(
            now_ms=clock.now,
            synchronized=synchronized,
            skew_ms=clock.skew if synchronized else None,
            device_boot_time_ms=clock.device_boot_time,
            device_uptime_ms=clock.device_uptime,
            device_utc_now_ms=clock.device_utc_now,
            default_server=clock.default_server,
            suppress_network_calls=clock.suppress_network_calls,
        )

    @property
    def now_iso(self) -> str:
        """``now_ms`` as an ISO 8601 UTC string with milliseconds."""
        moment = _UNIX_EPOCH + timedelta(milliseconds=self.now_ms)
        return moment.isoformat(timespec="milliseconds")

    def to_dict(self) -> dict[str, object]:
        """Serialise to a plain dictionary, including ``now_iso``."""
        data: dict[str, object] = asdict(self)
        data["now_iso"] = self.now_iso
        return data

    def to_json(self) -> str:
        """Serialise to a JSON string."""
        return json.dumps(self.to_dict())
