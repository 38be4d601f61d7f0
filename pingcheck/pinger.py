"""ICMP echo pinger that keeps running round-trip statistics."""

from __future__ import annotations

import errno
import math
import os
import random
import socket
import struct
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field

_ECHO_REQUEST = {socket.AF_INET: 8, socket.AF_INET6: 128}
_ECHO_REPLY = {socket.AF_INET: 0, socket.AF_INET6: 129}
_PROTO = {socket.AF_INET: socket.IPPROTO_ICMP, socket.AF_INET6: socket.IPPROTO_ICMPV6}
_HEADER = struct.Struct("!BBHHH")
_TRACKER_SIZE = 8
_DEFAULT_SIZE = 24
_RECV_SIZE = 65535
_POLL_INTERVAL = 0.1
_MIN_WAIT = 0.001


class PingError(Exception):
    """Raised when a host cannot be resolved or packets cannot be exchanged."""


@dataclass(frozen=True)
class Packet:
    """An echo reply that was received."""

    rtt: float
    ip_addr: str
    addr: str
    nbytes: int
    seq: int


@dataclass
class Statistics:
    """Results of a ping run. Round-trip times are in seconds, loss in percent."""

    packets_recv: int = 0
    packets_sent: int = 0
    packets_recv_duplicates: int = 0
    packet_loss: float = 0.0
    ip_addr: str = ""
    addr: str = ""
    rtts: list[float] = field(default_factory=list)
    min_rtt: float = 0.0
    max_rtt: float = 0.0
    avg_rtt: float = 0.0
    std_dev_rtt: float = 0.0


def _describe(exc: OSError) -> str:
    return exc.strerror or str(exc)


def _resolve(host: str) -> tuple[str, int]:
    if not host:
        raise PingError("lookup: no such host")
    try:
        infos = socket.getaddrinfo(host, None, type=socket.SOCK_DGRAM)
    except (socket.gaierror, UnicodeError) as exc:
        raise PingError(f"lookup {host}: no such host") from exc
    for family, _, _, _, sockaddr in infos:
        if family in _PROTO:
            return sockaddr[0], family
    raise PingError(f"lookup {host}: no such host")


def _checksum(data: bytes) -> int:
    if len(data) % 2:
        data += b"\0"
    total = sum(struct.unpack(f"!{len(data) // 2}H", data))
    while total >> 16:
        total = (total & 0xFFFF) + (total >> 16)
    return ~total & 0xFFFF


class Pinger:
    """Sends ICMP echo requests to one host and collects the replies.

    ``count`` <= 0 pings until stopped or timed out; ``timeout`` of ``None``
    means no deadline. Statistics describe the most recent run.
    """

    def __init__(
        self,
        addr: str,
        *,
        count: int = -1,
        interval: float = 1.0,
        timeout: float | None = None,
        size: int = _DEFAULT_SIZE,
        record_rtts: bool = True,
        privileged: bool = False,
        on_recv: Callable[[Packet], None] | None = None,
    ) -> None:
        self.addr = addr
        self.ip_addr, self._family = _resolve(addr)
        self.count = count
        self.interval = interval
        self.timeout = timeout
        self.size = max(size, _TRACKER_SIZE)
        self.record_rtts = record_rtts
        self.privileged = privileged
        self.on_recv = on_recv
        self.id = random.getrandbits(16)
        self._tracker = os.urandom(_TRACKER_SIZE)
        self._stop = threading.Event()
        self._lock = threading.Lock()
        self._reset()

    def _reset(self) -> None:
        with self._lock:
            self._sequence = 0
            self._sent_at: dict[int, float] = {}
            self._received: set[int] = set()
            self._packets_sent = 0
            self._packets_recv = 0
            self._duplicates = 0
            self._rtts: list[float] = []
            self._min = 0.0
            self._max = 0.0
            self._avg = 0.0
            self._m2 = 0.0

    def set_privileged(self, privileged: bool) -> None:
        """Choose raw ICMP sockets (True) or unprivileged datagram sockets (False)."""
        self.privileged = privileged

    def stop(self) -> None:
        """Ask a running or future run to finish."""
        self._stop.set()

    def _should_stop(self, stop_event: threading.Event | None) -> bool:
        return self._stop.is_set() or (stop_event is not None and stop_event.is_set())

    def run(self, stop_event: threading.Event | None = None) -> None:
        """Ping until the count is reached, the timeout passes or a stop is requested.

        Raises :class:`PingError` if the socket cannot be opened or used.
        """
        if self._should_stop(stop_event):
            return
        self._reset()
        sock = self._open_socket()
        try:
            self._run_loop(sock, stop_event)
        finally:
            sock.close()

    def _open_socket(self) -> socket.socket:
        kind = socket.SOCK_RAW if self.privileged else socket.SOCK_DGRAM
        try:
            return socket.socket(self._family, kind, _PROTO[self._family])
        except OSError as exc:
            raise PingError(f"socket: {_describe(exc)}") from exc

    def _can_send(self) -> bool:
        return self.count <= 0 or self._packets_sent < self.count

    def _run_loop(self, sock: socket.socket, stop_event: threading.Event | None) -> None:
        start = time.monotonic()
        deadline = None if self.timeout is None else start + self.timeout
        next_send = start
        while not self._should_stop(stop_event):
            now = time.monotonic()
            if deadline is not None and now >= deadline:
                return
            if self.count > 0 and self._packets_recv >= self.count:
                return
            if self._can_send() and now >= next_send:
                self._send(sock)
                next_send = now + self.interval
            wait = _POLL_INTERVAL
            if self._can_send():
                wait = min(wait, next_send - now)
            if deadline is not None:
                wait = min(wait, deadline - now)
            sock.settimeout(max(wait, _MIN_WAIT))
            try:
                data, peer = sock.recvfrom(_RECV_SIZE)
            except (socket.timeout, BlockingIOError, InterruptedError):
                continue
            except OSError as exc:
                raise PingError(f"read: {_describe(exc)}") from exc
            self._handle_reply(data, peer)

    def _build_request(self, seq: int) -> bytes:
        payload = self._tracker + bytes(self.size - _TRACKER_SIZE)
        kind = _ECHO_REQUEST[self._family]
        header = _HEADER.pack(kind, 0, 0, self.id, seq)
        if self._family == socket.AF_INET:
            header = _HEADER.pack(kind, 0, _checksum(header + payload), self.id, seq)
        return header + payload

    def _send(self, sock: socket.socket) -> None:
        seq = self._sequence
        packet = self._build_request(seq)
        destination = (
            (self.ip_addr, 0) if self._family == socket.AF_INET else (self.ip_addr, 0, 0, 0)
        )
        try:
            sock.sendto(packet, destination)
        except OSError as exc:
            if exc.errno == errno.ENOBUFS:
                return
            raise PingError(f"sendto: {_describe(exc)}") from exc
        with self._lock:
            self._sent_at[seq] = time.monotonic()
            self._received.discard(seq)
            self._packets_sent += 1
            self._sequence = (seq + 1) & 0xFFFF

    def _handle_reply(self, data: bytes, peer: tuple) -> None:
        received_at = time.monotonic()
        if self._family == socket.AF_INET and data and data[0] >> 4 == 4:
            data = data[(data[0] & 0x0F) * 4 :]
        if len(data) < _HEADER.size + _TRACKER_SIZE:
            return
        kind, _, _, ident, seq = _HEADER.unpack_from(data)
        if kind != _ECHO_REPLY[self._family]:
            return
        if self.privileged and ident != self.id:
            return
        if data[_HEADER.size : _HEADER.size + _TRACKER_SIZE] != self._tracker:
            return
        with self._lock:
            sent_at = self._sent_at.get(seq)
            if sent_at is None:
                return
            if seq in self._received:
                self._duplicates += 1
                return
            self._received.add(seq)
            rtt = received_at - sent_at
            self._packets_recv += 1
            if self._packets_recv == 1 or rtt < self._min:
                self._min = rtt
            if rtt > self._max:
                self._max = rtt
            delta = rtt - self._avg
            self._avg += delta / self._packets_recv
            self._m2 += delta * (rtt - self._avg)
            if self.record_rtts:
                self._rtts.append(rtt)
        if self.on_recv is not None:
            self.on_recv(
                Packet(rtt=rtt, ip_addr=str(peer[0]), addr=self.addr, nbytes=len(data), seq=seq)
            )

    def statistics(self) -> Statistics:
        """Return the statistics of the most recent run."""
        with self._lock:
            sent, recv = self._packets_sent, self._packets_recv
            return Statistics(
                packets_recv=recv,
                packets_sent=sent,
                packets_recv_duplicates=self._duplicates,
                packet_loss=(sent - recv) / sent * 100 if sent else 0.0,
                ip_addr=self.ip_addr,
                addr=self.addr,
                rtts=list(self._rtts),
                min_rtt=self._min,
                max_rtt=self._max,
                avg_rtt=self._avg,
                std_dev_rtt=math.sqrt(self._m2 / recv) if recv else 0.0,
            )