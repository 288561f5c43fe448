"""Reverse-DNS labels for upstream servers named in a reference identifier."""

from __future__ import annotations

import socket
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)


def reverse_lookup(address: str) -> Optional[str]:
    """Host name for ``address``, or None when there is no PTR record."""
    try:
        host, _aliases, _addresses = socket.gethostbyaddr(address)
    except OSError as e:
        logger.debug("reverse lookup failed", address=address, error=str(e))
        return None
    return host
