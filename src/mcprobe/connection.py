"""TCP and UDP transports with a deadline covering the whole exchange."""

from __future__ import annotations

import contextlib
import logging
import socket
import time
from typing import Self

from mcprobe.errors import ConnectionClosedError, DeadlineExceededError

log = logging.getLogger(__name__)

MAX_DATAGRAM_SIZE = 65535


class Deadline:
    """A point in time after which socket operations fail.

    ``None`` means no deadline at all (blocking forever).
    """

    def __init__(self, timeout: float | None) -> None:
        self._expires = None if timeout is None else time.monotonic() + timeout

    def remaining(self) -> float | None:
        """Seconds left, raising once the deadline has passed."""
        if self._expires is None:
            return None
        left = self._expires - time.monotonic()
        if left <= 0:
            msg = "Deadline exceeded"
            raise DeadlineExceededError(msg)
        return left


class _Stream:
    def __init__(self, sock: socket.socket, deadline: Deadline) -> None:
        self._sock: socket.socket | None = sock
        self._deadline = deadline

    @property
    def closed(self) -> bool:
        return self._sock is None

    def set_timeout(self, timeout: float | None) -> None:
        """Re-arm the deadline, counting from now. ``None`` clears it."""
        self._deadline = Deadline(timeout)

    def _armed(self) -> socket.socket:
        if self._sock is None:
            msg = "Stream is closed"
            raise ConnectionClosedError(msg)
        self._sock.settimeout(self._deadline.remaining())
        return self._sock

    def close(self) -> None:
        """Close the socket. Safe to call more than once.

        Shutting down first wakes up any thread blocked in ``recv``.
        """
        sock, self._sock = self._sock, None
        if sock is None:
            return
        with contextlib.suppress(OSError):
            sock.shutdown(socket.SHUT_RDWR)
        with contextlib.suppress(OSError):
            sock.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class TcpStream(_Stream):
    """A connected TCP socket offering exact reads."""

    def write(self, data: bytes) -> None:
        sock = self._armed()
        try:
            sock.sendall(data)
        except TimeoutError as e:
            msg = "Timed out while sending"
            raise DeadlineExceededError(msg) from e

    def read(self, size: int) -> bytes:
        """Read exactly ``size`` bytes, handling partial reads."""
        data = bytearray()
        while len(data) < size:
            sock = self._armed()
            try:
                chunk = sock.recv(size - len(data))
            except TimeoutError as e:
                msg = f"Timed out waiting for {size - len(data)} more bytes"
                raise DeadlineExceededError(msg) from e

            if not chunk:
                msg = "Connection closed by server"
                raise ConnectionClosedError(msg)

            data.extend(chunk)

        return bytes(data)

    def read_until(self, delimiter: bytes = b"\n") -> bytes:
        """Read up to and excluding ``delimiter``.

        Reads one byte at a time so nothing past the delimiter is consumed.
        """
        data = bytearray()
        while not data.endswith(delimiter):
            data += self.read(1)
        return bytes(data[: -len(delimiter)])


class UdpStream(_Stream):
    """A connected UDP socket exchanging whole datagrams."""

    def write(self, data: bytes) -> None:
        sock = self._armed()
        try:
            sock.send(data)
        except TimeoutError as e:
            msg = "Timed out while sending"
            raise DeadlineExceededError(msg) from e

    def recv(self) -> bytes:
        """Receive one datagram."""
        sock = self._armed()
        try:
            return sock.recv(MAX_DATAGRAM_SIZE)
        except TimeoutError as e:
            msg = "Timed out waiting for a datagram"
            raise DeadlineExceededError(msg) from e


def dial_tcp(host: str, port: int, timeout: float | None) -> TcpStream:
    """Open a TCP connection. The deadline starts before connecting."""
    log.debug("Connecting to %s:%d over TCP", host, port)
    deadline = Deadline(timeout)
    try:
        sock = socket.create_connection((host, port), timeout=timeout)
    except TimeoutError as e:
        msg = f"Timed out connecting to {host}:{port}"
        raise DeadlineExceededError(msg) from e
    return TcpStream(sock, deadline)


def dial_udp(host: str, port: int, timeout: float | None) -> UdpStream:
    """Open a connected UDP socket to ``host:port``."""
    log.debug("Connecting to %s:%d over UDP", host, port)
    deadline = Deadline(timeout)
    family, socktype, proto, _, address = socket.getaddrinfo(
        host, port, type=socket.SOCK_DGRAM
    )[0]
    sock = socket.socket(family, socktype, proto)
    try:
        sock.connect(address)
    except OSError:
        sock.close()
        raise
    return UdpStream(sock, deadline)


def parse_address(address: str, default_port: int) -> tuple[str, int]:
    """Split ``host[:port]`` into its parts.

    Bracketed IPv6 literals (``[::1]:25565``) are supported; a bare IPv6
    literal is returned with the default port.

    Raises:
        ValueError: If the port is not a number between 0 and 65535.
    """
    port_str: str | None = None
    if address.startswith("["):
        end = address.find("]")
        if end == -1:
            msg = f"Unterminated IPv6 literal: {address}"
            raise ValueError(msg)
        host, rest = address[1:end], address[end + 1 :]
        if rest.startswith(":"):
            port_str = rest[1:]
    elif address.count(":") == 1:
        host, port_str = address.split(":")
    else:
        host = address

    if port_str is None:
        return host, default_port

    if not port_str.isdigit() or not 0 <= int(port_str) <= 65535:  # noqa: PLR2004
        msg = f"Invalid port: {port_str!r}"
        raise ValueError(msg)
    return host, int(port_str)
