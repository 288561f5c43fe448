"""Shared fixtures: synthetic server replies and a local UDP responder."""

import socket
import struct
import threading

import pytest

from ntpcheck.sntp.timestamp import encode_fixed_point64, encode_local_to_millis, now_local


def build_response(
    li=0,
    vn=4,
    mode=4,
    stratum=2,
    poll=6,
    precision=-20,
    root_delay_raw=0x00010000,
    root_dispersion_raw=0x00008000,
    ref_id=b"\xc0\x00\x02\x01",
    ref_ts=(0, 0),
    orig_ts=(0, 0),
    recv_ts=(0, 0),
    tx_ts=(0, 0),
) -> bytes:
    """Raw 48-byte reply; timestamps given as (seconds, fraction) pairs."""
    return (
        struct.pack("!BBbb", (li << 6) | (vn << 3) | mode, stratum, poll, precision)
        + struct.pack("!iI", root_delay_raw, root_dispersion_raw)
        + ref_id
        + struct.pack("!II", *ref_ts)
        + struct.pack("!II", *orig_ts)
        + struct.pack("!II", *recv_ts)
        + struct.pack("!II", *tx_ts)
    )


def live_reply(skew_millis=0.0, **fields):
    """Reply factory stamping receive/transmit with the current time (+ skew)."""

    def reply(request):
        stamp = encode_local_to_millis(now_local()) + skew_millis
        ts = struct.unpack("!II", encode_fixed_point64(stamp))
        return build_response(recv_ts=ts, tx_ts=ts, **fields)

    return reply


class UdpResponder:
    """Answers each datagram with ``reply(request)``; None means stay silent."""

    def __init__(self, reply):
        self.reply = reply
        self.requests = []
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.settimeout(0.05)
        self.port = self.sock.getsockname()[1]
        self._running = True
        self._thread = threading.Thread(target=self._loop, daemon=True)
        self._thread.start()

    def _loop(self):
        while self._running:
            try:
                data, addr = self.sock.recvfrom(1024)
            except socket.timeout:
                continue
            except OSError:
                break
            self.requests.append(data)
            response = self.reply(data)
            if response is not None:
                self.sock.sendto(response, addr)

    def stop(self):
        self._running = False
        self._thread.join()
        self.sock.close()


@pytest.fixture
def response_builder():
    return build_response


@pytest.fixture
def udp_responder():
    started = []

    def start(reply):
        responder = UdpResponder(reply)
        started.append(responder)
        return responder

    yield start
    for responder in started:
        responder.stop()


@pytest.fixture
def live():
    return live_reply
