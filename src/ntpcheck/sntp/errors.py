"""Error types raised by the SNTP query engine."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ProtocolErrorKind(Enum):
    ALARM_CONDITION = "alarm_condition"
    MALFORMED_RESPONSE = "malformed_response"


class TransportErrorKind(Enum):
    CONNECT_FAILED = "connect_failed"
    SEND_FAILED = "send_failed"
    RECEIVE_FAILED = "receive_failed"
    TIMEOUT = "timeout"


class PolicyBreachKind(Enum):
    OFFSET_EXCEEDED = "offset_exceeded"


class NtpError(Exception):
    """Base class for every error raised by ntpcheck."""


class ProtocolError(NtpError):
    """The server answered, but the answer cannot be used."""

    def __init__(self, kind: ProtocolErrorKind, message: str):
        super().__init__(message)
        self.kind = kind


class AlarmCondition(ProtocolError):
    """Server reports an unsynchronized clock (LI=3)."""

    def __init__(self, message: str = "server clock not synchronized (leap indicator alarm)"):
        super().__init__(ProtocolErrorKind.ALARM_CONDITION, message)


class MalformedResponse(ProtocolError):
    def __init__(self, message: str):
        super().__init__(ProtocolErrorKind.MALFORMED_RESPONSE, message)


class TransportError(NtpError):
    """Networking failure during a single request/response exchange.

    ``phase`` is one of "connect", "send" or "receive".
    """

    def __init__(
        self,
        kind: TransportErrorKind,
        message: str,
        server: Optional[str] = None,
        phase: Optional[str] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.server = server
        self.phase = phase


class PolicyBreach(NtpError):
    """Offset outside the configured threshold.

    Not a failure of the exchange itself. Depending on the configured
    action it is attached to the result as a warning or marks it failed.
    """

    def __init__(self, offset_millis: float, max_offset_millis: float, action):
        super().__init__(
            f"offset {offset_millis:.3f} ms exceeds maximum of {max_offset_millis:.3f} ms"
        )
        self.kind = PolicyBreachKind.OFFSET_EXCEEDED
        self.offset_millis = offset_millis
        self.max_offset_millis = max_offset_millis
        self.action = action

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "offset_millis": self.offset_millis,
            "max_offset_millis": self.max_offset_millis,
            "action": getattr(self.action, "value", self.action),
            "message": str(self),
        }
