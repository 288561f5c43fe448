"""Single SNTP request/response exchange over UDP.

One UdpTransaction owns one socket for the lifetime of one exchange.
There are no retries apart from the name -> pre-resolved address
fallback when addressing the datagram.
"""

from __future__ import annotations

import socket
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterator, List, Optional

import structlog

from ntpcheck.sntp.errors import TransportError, TransportErrorKind
from ntpcheck.sntp.packet import NTP_PORT
from ntpcheck.sntp.timestamp import now_local

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 5.0
# Larger than a packet so oversized replies are seen whole and rejected by the codec
RECV_BUFFER = 1024


@dataclass(frozen=True)
class Transaction:
    """Outcome of one exchange: raw reply plus local send/arrival instants."""

    server: str
    address: str
    originate_local: datetime  # t1
    arrival_local: datetime  # t4
    raw_response: bytes


class UdpTransaction:
    """Send one request datagram and wait for one reply."""

    def __init__(
        self,
        server: str,
        fallback_address: Optional[str] = None,
        port: int = NTP_PORT,
        timeout: float = DEFAULT_TIMEOUT,
        clock: Callable[[], datetime] = now_local,
        socket_factory: Callable[..., socket.socket] = socket.socket,
    ):
        self.server = server
        self.fallback_address = fallback_address
        self.port = port
        self.timeout = timeout
        self.clock = clock
        self.socket_factory = socket_factory

    def candidates(self) -> List[str]:
        """Addresses to try, in order: the server name, then the fallback IP."""
        ordered = [self.server]
        if self.fallback_address and self.fallback_address != self.server:
            ordered.append(self.fallback_address)
        return ordered

    @contextmanager
    def _endpoint(self) -> Iterator[socket.socket]:
        try:
            sock = self.socket_factory(socket.AF_INET, socket.SOCK_DGRAM)
        except OSError as e:
            raise TransportError(
                TransportErrorKind.CONNECT_FAILED, f"cannot open socket: {e}", self.server, "connect"
            ) from e
        try:
            try:
                sock.settimeout(self.timeout)
            except ValueError as e:
                raise TransportError(
                    TransportErrorKind.CONNECT_FAILED, f"invalid timeout {self.timeout!r}: {e}", self.server, "connect"
                ) from e
            yield sock
        finally:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                # Not connected, nothing to shut down
                pass
            sock.close()

    def _connect(self, sock: socket.socket) -> str:
        last_error: Optional[Exception] = None
        for address in self.candidates():
            try:
                sock.connect((address, self.port))
                return address
            except (OSError, OverflowError) as e:
                # OverflowError: port outside 0-65535
                logger.warning("connect failed", server=self.server, address=address, error=str(e))
                last_error = e
        raise TransportError(
            TransportErrorKind.CONNECT_FAILED,
            f"cannot reach {self.server}: {last_error}",
            self.server,
            "connect",
        ) from last_error

    def run(self, request: bytes) -> Transaction:
        """Perform the exchange and return the raw reply with t1/t4."""
        logger.debug("transaction start", server=self.server, port=self.port, timeout=self.timeout)
        with self._endpoint() as sock:
            address = self._connect(sock)

            originate = self.clock()
            try:
                sock.send(request)
            except socket.timeout as e:
                raise TransportError(
                    TransportErrorKind.TIMEOUT, f"send to {address} timed out", self.server, "send"
                ) from e
            except OSError as e:
                raise TransportError(
                    TransportErrorKind.SEND_FAILED, f"send to {address} failed: {e}", self.server, "send"
                ) from e

            try:
                response = sock.recv(RECV_BUFFER)
            except socket.timeout as e:
                logger.warning("receive timed out", server=self.server, address=address, timeout=self.timeout)
                raise TransportError(
                    TransportErrorKind.TIMEOUT,
                    f"no reply from {address} within {self.timeout}s",
                    self.server,
                    "receive",
                ) from e
            except OSError as e:
                raise TransportError(
                    TransportErrorKind.RECEIVE_FAILED,
                    f"receive from {address} failed: {e}",
                    self.server,
                    "receive",
                ) from e
            arrival = self.clock()

        logger.debug("transaction complete", server=self.server, address=address, size=len(response))
        return Transaction(
            server=self.server,
            address=address,
            originate_local=originate,
            arrival_local=arrival,
            raw_response=response,
        )
