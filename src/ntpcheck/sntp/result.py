"""Assemble a decoded packet and local timestamps into an NtpResult.

Also holds the human-readable code tables and the offset threshold policy.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Union

import structlog

from ntpcheck.sntp.calc import offset_and_delay
from ntpcheck.sntp.errors import PolicyBreach
from ntpcheck.sntp.packet import Ipv4Reference, NtpPacket
from ntpcheck.sntp.timestamp import encode_local_to_millis, millis_to_local
from ntpcheck.transport.udp import Transaction

logger = structlog.get_logger(__name__)


LEAP_TEXT: Mapping[int, str] = {
    0: "no warning",
    1: "last minute has 61 seconds",
    2: "last minute has 59 seconds",
    3: "alarm condition (clock not synchronized)",
}

MODE_TEXT: Mapping[int, str] = {
    0: "reserved",
    1: "symmetric active",
    2: "symmetric passive",
    3: "client",
    4: "server",
    5: "broadcast",
    6: "reserved for NTP control message",
    7: "reserved for private use",
}


def describe(table: Mapping[int, str], code: int) -> Optional[str]:
    """Text for ``code``, or None so the caller keeps the raw number."""
    return table.get(code)


def stratum_text(stratum: int) -> Optional[str]:
    if stratum == 0:
        return "unspecified or unavailable"
    if stratum == 1:
        return "primary reference"
    if 2 <= stratum <= 15:
        return "secondary reference"
    if 16 <= stratum <= 255:
        return "reserved"
    return None


class OffsetAction(Enum):
    REPORT = "report"
    REPORT_AND_FAIL = "fail"
    SILENT = "silent"


@dataclass(frozen=True)
class OffsetPolicy:
    """What to do when |offset| exceeds ``max_offset_millis``.

    A threshold of None disables the check. The policy never changes the
    computed numbers, only how a breach is communicated.
    """

    max_offset_millis: Optional[float] = None
    action: OffsetAction = OffsetAction.REPORT

    def evaluate(self, offset_millis: float, server: Optional[str] = None) -> Optional[PolicyBreach]:
        if self.max_offset_millis is None or abs(offset_millis) <= self.max_offset_millis:
            return None
        if self.action is OffsetAction.SILENT:
            return None
        breach = PolicyBreach(offset_millis, self.max_offset_millis, self.action)
        logger.warning(
            "offset exceeded",
            server=server,
            offset_ms=offset_millis,
            max_offset_ms=self.max_offset_millis,
            action=self.action.value,
        )
        return breach

    def fails(self, breach: Optional[PolicyBreach]) -> bool:
        return breach is not None and self.action is OffsetAction.REPORT_AND_FAIL


@dataclass(frozen=True)
class NtpResult:
    server: str
    address: str

    leap_indicator: int
    leap_text: Optional[str]
    version_number: int
    mode: int
    mode_text: Optional[str]
    stratum: int
    stratum_text: Optional[str]
    poll_interval: int
    poll_interval_seconds: float
    precision: int
    precision_seconds: float
    root_delay: float
    root_dispersion: float

    reference_identifier: Union[str, float, None]
    reference_kind: str
    reference_host: Optional[str]
    reference_timestamp: float

    offset_millis: float
    delay_millis: float
    estimated_server_time: datetime

    t1_millis: float
    t2_millis: float
    t3_millis: float
    t4_millis: float
    t1_local: datetime
    t2_local: datetime
    t3_local: datetime
    t4_local: datetime

    offset_breach: Optional[PolicyBreach] = None
    failed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe representation."""
        data = {}
        for field in fields(self):
            value = getattr(self, field.name)
            data[field.name] = value.isoformat() if isinstance(value, datetime) else value
        data["offset_breach"] = self.offset_breach.to_dict() if self.offset_breach else None
        return data


def assemble_result(
    packet: NtpPacket,
    transaction: Transaction,
    policy: Optional[OffsetPolicy] = None,
    enrich: Optional[Callable[[str], Optional[str]]] = None,
) -> NtpResult:
    """Combine packet fields, offset/delay and classifications.

    ``enrich`` maps an IPv4 reference identifier to a host label; pass None
    to skip reverse DNS.
    """
    policy = policy or OffsetPolicy()

    t1 = encode_local_to_millis(transaction.originate_local)
    t2 = packet.receive_timestamp
    t3 = packet.transmit_timestamp
    t4 = encode_local_to_millis(transaction.arrival_local)
    offset, delay = offset_and_delay(t1, t2, t3, t4)

    reference = packet.reference_identifier
    if enrich is not None and isinstance(reference, Ipv4Reference):
        reference = replace(reference, host=enrich(reference.value))

    breach = policy.evaluate(offset, transaction.server)

    result = NtpResult(
        server=transaction.server,
        address=transaction.address,
        leap_indicator=packet.leap_indicator,
        leap_text=describe(LEAP_TEXT, packet.leap_indicator),
        version_number=packet.version_number,
        mode=packet.mode,
        mode_text=describe(MODE_TEXT, packet.mode),
        stratum=packet.stratum,
        stratum_text=stratum_text(packet.stratum),
        poll_interval=packet.poll_interval,
        poll_interval_seconds=packet.poll_interval_seconds,
        precision=packet.precision,
        precision_seconds=packet.precision_seconds,
        root_delay=packet.root_delay,
        root_dispersion=packet.root_dispersion,
        reference_identifier=reference.value,
        reference_kind=reference.kind,
        reference_host=getattr(reference, "host", None),
        reference_timestamp=packet.reference_timestamp,
        offset_millis=offset,
        delay_millis=delay,
        estimated_server_time=millis_to_local(t4 + offset),
        t1_millis=t1,
        t2_millis=t2,
        t3_millis=t3,
        t4_millis=t4,
        t1_local=millis_to_local(t1),
        t2_local=millis_to_local(t2),
        t3_local=millis_to_local(t3),
        t4_local=millis_to_local(t4),
        offset_breach=breach,
        failed=policy.fails(breach),
    )
    logger.info(
        "ntp result",
        server=result.server,
        stratum=result.stratum,
        offset_ms=round(offset, 3),
        delay_ms=round(delay, 3),
        failed=result.failed,
    )
    return result
