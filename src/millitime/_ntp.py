"""NTP wire constants and reply decoding.

Only the SNTP client subset needed for a single request/reply exchange
is implemented.  The request is a 48-byte buffer, zero apart from the
client header byte; the reply is read back into the same buffer and
only the server *transmit timestamp* is consumed::

    offset 40                44                48
           +-----------------+-----------------+
           | seconds (u32 BE)| fraction (u32 BE)|
           +-----------------+-----------------+

Seconds count from the NTP epoch (1900-01-01T00:00:00Z).  The
fraction is in units of 2**-32 seconds.  All arithmetic is integer so
decoded values are exact to the millisecond.
"""

from __future__ import annotations

import struct

from millitime._errors import FailureReason, SyncError

NTP_PORT = 123
"""Well-known UDP port of the time protocol."""

PACKET_SIZE = 48
"""Size in bytes of both the client request and the server reply."""

RECEIVE_TIMEOUT_S = 3.0
"""Fixed upper bound on waiting for the server reply."""

FALLBACK_SERVER = "pool.ntp.org"
"""Hostname used when neither the caller nor the default supplies one."""

TRANSMIT_TIMESTAMP_OFFSET = 40

NTP_TO_UNIX_MS = 2_208_988_800_000
"""Milliseconds between 1900-01-01 and 1970-01-01 (70 years, 17 leap days)."""

_FRACTION_SCALE = 1 << 32
_TIMESTAMP = struct.Struct("!II")


def new_buffer() -> bytearray:
    """Return a zero-filled request/reply buffer."""
    return bytearray(PACKET_SIZE)


def decode_transmit_timestamp(buffer: bytes | bytearray, received: int) -> int:
    """Decode the server transmit timestamp as NTP-epoch milliseconds.

    Args:
        buffer: The reply buffer.
        received: Number of bytes the transport actually wrote into
            *buffer*.

    Raises:
        SyncError: With :attr:`FailureReason.MALFORMED_REPLY` when the
            reply is shorter than a full packet.
    """
    if received < PACKET_SIZE or len(buffer) < PACKET_SIZE:
        raise SyncError(
            FailureReason.MALFORMED_REPLY,
            f"reply of {received} bytes, expected {PACKET_SIZE}",
        )
    seconds, fraction = _TIMESTAMP.unpack_from(buffer, TRANSMIT_TIMESTAMP_OFFSET)
    return seconds * 1000 + fraction * 1000 // _FRACTION_SCALE


def to_unix_millis(ntp_millis: int, half_round_trip_ms: int) -> int:
    """Convert NTP-epoch milliseconds to Unix milliseconds at reception.

    Half the measured round trip is added as the one-way delay estimate,
    moving the server's transmit instant forward to our receive instant.
    """
    return ntp_millis - NTP_TO_UNIX_MS + half_round_trip_ms
