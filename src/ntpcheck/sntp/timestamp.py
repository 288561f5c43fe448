"""Conversions between NTP fixed-point timestamps and wall-clock instants.

NTP timestamps count seconds since 1900-01-01T00:00:00Z as a 32.32
fixed-point number. Internally everything is kept as milliseconds since
that epoch (a float, so sub-millisecond fractions survive), and only
converted to local time for display.
"""

from __future__ import annotations

import struct
from datetime import datetime, timedelta, timezone

from ntpcheck.sntp.errors import MalformedResponse

NTP_EPOCH = datetime(1900, 1, 1, tzinfo=timezone.utc)
NTP_DELTA = 2208988800  # seconds between 1900-01-01 and 1970-01-01

_FRACTION_SCALE = 2**32


def decode_fixed_point64(data: bytes) -> float:
    """Decode an 8-byte 32.32 timestamp into milliseconds since the NTP epoch."""
    if len(data) != 8:
        raise MalformedResponse(f"timestamp must be 8 bytes, got {len(data)}")
    seconds, fraction = struct.unpack("!II", data)
    return seconds * 1000 + fraction * 1000 / _FRACTION_SCALE


def encode_fixed_point64(millis: float) -> bytes:
    """Encode milliseconds since the NTP epoch as an 8-byte 32.32 timestamp."""
    seconds = int(millis // 1000)
    fraction = int(round((millis - seconds * 1000) * _FRACTION_SCALE / 1000))
    if fraction >= _FRACTION_SCALE:
        seconds += 1
        fraction -= _FRACTION_SCALE
    return struct.pack("!II", seconds & 0xFFFFFFFF, fraction)


def decode_fixed_point32(data: bytes, signed: bool = False) -> float:
    """Decode a 4-byte 16.16 value (root delay / dispersion) into seconds."""
    if len(data) != 4:
        raise MalformedResponse(f"short-format value must be 4 bytes, got {len(data)}")
    (raw,) = struct.unpack("!i" if signed else "!I", data)
    return raw / 2**16


def encode_local_to_millis(instant: datetime) -> float:
    """Milliseconds since the NTP epoch for a wall-clock instant.

    Naive datetimes are interpreted as local time.
    """
    delta = instant.astimezone(timezone.utc) - NTP_EPOCH
    return delta.days * 86_400_000 + delta.seconds * 1000 + delta.microseconds / 1000


def millis_to_local(millis: float) -> datetime:
    """Aware local datetime for milliseconds since the NTP epoch."""
    return (NTP_EPOCH + timedelta(milliseconds=millis)).astimezone()


def now_local() -> datetime:
    return datetime.now().astimezone()
