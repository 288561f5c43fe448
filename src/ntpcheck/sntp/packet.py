"""SNTP packet codec.

Wire layout (RFC-2030, all fields big-endian)::

    0      LI(2) | VN(3) | Mode(3)
    1      stratum              uint8
    2      poll interval        int8, log2 seconds
    3      precision            int8, log2 seconds
    4-7    root delay           signed 16.16 seconds
    8-11   root dispersion      unsigned 16.16 seconds
    12-15  reference identifier
    16-23  reference timestamp  32.32
    24-31  originate timestamp  32.32
    32-39  receive timestamp    32.32 (t2)
    40-47  transmit timestamp   32.32 (t3)
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Union

from ntpcheck.sntp.errors import AlarmCondition, MalformedResponse
from ntpcheck.sntp.timestamp import decode_fixed_point32, decode_fixed_point64

PACKET_SIZE = 48
NTP_PORT = 123

LEAP_ALARM = 3
MODE_CLIENT = 3
DEFAULT_VERSION = 3

_HEADER_FORMAT = "!BBbb"


def build_request(version: int = DEFAULT_VERSION) -> bytearray:
    """Return a client-mode request: 48 zero bytes with LI/VN/Mode in byte 0.

    The originate timestamp is left zero; the client keeps t1 locally.
    """
    packet = bytearray(PACKET_SIZE)
    packet[0] = (0 << 6) | (version << 3) | MODE_CLIENT
    return packet


# Reference identifier variants


@dataclass(frozen=True)
class AsciiReference:
    """Stratum 0/1: four-character code of the reference clock ("GPS", "PPS")."""
    value: str
    kind: str = "ascii"


@dataclass(frozen=True)
class Ipv4Reference:
    """Stratum >= 2 on NTPv3: address of the upstream server."""
    value: str
    host: Optional[str] = None
    kind: str = "ipv4"


@dataclass(frozen=True)
class TimestampReference:
    """Stratum >= 2 on NTPv4: low 32 bits of the upstream transmit timestamp."""
    value: float
    kind: str = "timestamp"


@dataclass(frozen=True)
class UnsupportedReference:
    version: int
    value: None = None
    kind: str = "unsupported"


ReferenceIdentifier = Union[AsciiReference, Ipv4Reference, TimestampReference, UnsupportedReference]


def _decode_ascii(raw: bytes) -> AsciiReference:
    return AsciiReference(raw.decode("ascii", errors="replace").strip("\x00 "))


def _decode_ipv4(raw: bytes) -> Ipv4Reference:
    return Ipv4Reference(".".join(str(octet) for octet in raw))


def _decode_fraction(raw: bytes) -> TimestampReference:
    (low_bits,) = struct.unpack("!I", raw)
    return TimestampReference(low_bits * 1000 / 2**32)


# Secondary servers (stratum >= 2), keyed by protocol version
_SECONDARY_DECODERS: Dict[int, Callable[[bytes], ReferenceIdentifier]] = {
    3: _decode_ipv4,
    4: _decode_fraction,
}


def decode_reference_identifier(raw: bytes, stratum: int, version: int) -> ReferenceIdentifier:
    if len(raw) != 4:
        raise MalformedResponse(f"reference identifier must be 4 bytes, got {len(raw)}")
    if stratum <= 1:
        return _decode_ascii(raw)
    decoder = _SECONDARY_DECODERS.get(version)
    if decoder is None:
        return UnsupportedReference(version)
    return decoder(raw)


@dataclass(frozen=True)
class NtpPacket:
    """Decoded server response. Timestamps are milliseconds since 1900-01-01 UTC."""

    leap_indicator: int
    version_number: int
    mode: int
    stratum: int
    poll_interval: int
    precision: int
    root_delay: float
    root_dispersion: float
    reference_identifier_raw: bytes
    reference_timestamp: float
    originate_timestamp: float
    receive_timestamp: float
    transmit_timestamp: float

    @property
    def poll_interval_seconds(self) -> float:
        return 2.0 ** self.poll_interval

    @property
    def precision_seconds(self) -> float:
        return 2.0 ** self.precision

    @property
    def reference_identifier(self) -> ReferenceIdentifier:
        return decode_reference_identifier(
            self.reference_identifier_raw, self.stratum, self.version_number
        )


def decode_response(data: bytes) -> NtpPacket:
    """Parse a 48-byte server response.

    Raises MalformedResponse for any other length and AlarmCondition when
    the server flags its clock as unsynchronized (LI=3).
    """
    if len(data) != PACKET_SIZE:
        raise MalformedResponse(
            f"response must be exactly {PACKET_SIZE} bytes, got {len(data)}"
        )
    data = bytes(data)

    first, stratum, poll, precision = struct.unpack(_HEADER_FORMAT, data[0:4])
    leap = (first >> 6) & 0x3
    if leap == LEAP_ALARM:
        raise AlarmCondition()

    return NtpPacket(
        leap_indicator=leap,
        version_number=(first >> 3) & 0x7,
        mode=first & 0x7,
        stratum=stratum,
        poll_interval=poll,
        precision=precision,
        root_delay=decode_fixed_point32(data[4:8], signed=True),
        root_dispersion=decode_fixed_point32(data[8:12]),
        reference_identifier_raw=data[12:16],
        reference_timestamp=decode_fixed_point64(data[16:24]),
        originate_timestamp=decode_fixed_point64(data[24:32]),
        receive_timestamp=decode_fixed_point64(data[32:40]),
        transmit_timestamp=decode_fixed_point64(data[40:48]),
    )
