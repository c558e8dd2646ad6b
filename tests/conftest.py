"""Loopback servers for end-to-end protocol tests."""

import socket
import threading

import pytest

SERVER_TIMEOUT = 5.0


class SocketReader:
    """Exact reads over a server-side socket, for use with ``mcprobe.wire``."""

    def __init__(self, conn: socket.socket) -> None:
        self.conn = conn

    def read(self, size: int) -> bytes:
        data = b""
        while len(data) < size:
            chunk = self.conn.recv(size - len(data))
            if not chunk:
                msg = "client closed the connection"
                raise ConnectionError(msg)
            data += chunk
        return data

    def drain(self) -> None:
        """Block until the client hangs up."""
        while self.conn.recv(1024):
            pass


@pytest.fixture
def tcp_server():
    """Start a one-shot TCP server running ``handler(conn)``.

    Returns the ``(host, port)`` to connect to.
    """
    started = []

    def start(handler):
        listener = socket.create_server(("127.0.0.1", 0))
        listener.settimeout(SERVER_TIMEOUT)

        def serve():
            try:
                conn, _ = listener.accept()
            except OSError:
                return
            with conn:
                conn.settimeout(SERVER_TIMEOUT)
                handler(conn)

        thread = threading.Thread(target=serve, daemon=True)
        thread.start()
        started.append((listener, thread))
        return listener.getsockname()[:2]

    yield start

    for listener, thread in started:
        listener.close()
        thread.join(SERVER_TIMEOUT)


@pytest.fixture
def udp_server():
    """Start a UDP server running ``handler(sock)`` once.

    Returns the ``(host, port)`` to send to.
    """
    started = []

    def start(handler):
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.bind(("127.0.0.1", 0))
        sock.settimeout(SERVER_TIMEOUT)

        def serve():
            try:
                handler(sock)
            except OSError:
                return

        thread = threading.Thread(target=serve, daemon=True)
        thread.start()
        started.append((sock, thread))
        return sock.getsockname()[:2]

    yield start

    for sock, thread in started:
        thread.join(SERVER_TIMEOUT)
        sock.close()
