"""Run one SNTP query: exchange, decode, compute, assemble."""

from __future__ import annotations

from typing import Optional

import structlog

from ntpcheck.config.settings import Settings, settings
from ntpcheck.sntp.errors import NtpError
from ntpcheck.sntp.packet import DEFAULT_VERSION, build_request, decode_response
from ntpcheck.sntp.result import NtpResult, OffsetAction, OffsetPolicy, assemble_result
from ntpcheck.transport.resolver import reverse_lookup
from ntpcheck.transport.udp import UdpTransaction

logger = structlog.get_logger(__name__)


def policy_from_settings(config: Settings = settings) -> OffsetPolicy:
    return OffsetPolicy(
        max_offset_millis=config.NTP_MAX_OFFSET_MS,
        action=OffsetAction(config.NTP_OFFSET_ACTION),
    )


def query_server(
    server: str,
    fallback_address: Optional[str] = None,
    *,
    port: Optional[int] = None,
    timeout: Optional[float] = None,
    no_dns: Optional[bool] = None,
    policy: Optional[OffsetPolicy] = None,
    version: int = DEFAULT_VERSION,
    config: Settings = settings,
) -> NtpResult:
    """Query ``server`` once and return the assembled result.

    Arguments left as None fall back to ``config``. Raises ProtocolError or
    TransportError; nothing is retried beyond the fallback address.
    """
    log = logger.bind(server=server)
    transaction = UdpTransaction(
        server,
        fallback_address,
        port=port if port is not None else config.NTP_PORT,
        timeout=timeout if timeout is not None else config.NTP_TIMEOUT,
    )
    try:
        exchange = transaction.run(build_request(version))
        packet = decode_response(exchange.raw_response)
    except NtpError as e:
        log.error("query failed", error=str(e), error_type=type(e).__name__)
        raise

    skip_dns = config.NTP_NO_DNS if no_dns is None else no_dns
    return assemble_result(
        packet,
        exchange,
        policy if policy is not None else policy_from_settings(config),
        enrich=None if skip_dns else reverse_lookup,
    )
