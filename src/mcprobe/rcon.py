"""RCON session with a background reader.

Minecraft does not tie command responses to the command that caused them in
any way a client can rely on, so :meth:`RconSession.run` only sends. Every
response frame the server sends after login is pushed onto
:attr:`RconSession.messages` by a daemon thread, and callers consume that
queue at their own pace.

The queue is bounded (``max_backlog``). When it is full the reader stops
pulling frames off the socket until the consumer catches up, so a slow
consumer pushes back on the server instead of growing memory without limit.
"""

from __future__ import annotations

import itertools
import logging
import queue
import threading
from enum import Enum
from typing import Self

from mcprobe.connection import TcpStream, dial_tcp
from mcprobe.errors import (
    AlreadyLoggedInError,
    ConnectionClosedError,
    DeadlineExceededError,
    InvalidPasswordError,
    McProbeError,
    NotConnectedError,
    NotLoggedInError,
    UnexpectedResponseError,
)
from mcprobe.protocol import (
    AUTH_FAILED_REQUEST_ID,
    LOGIN_REQUEST_ID,
    MAX_COMMAND_PAYLOAD,
    Packet,
    PacketType,
    read_packet,
)

log = logging.getLogger(__name__)

DEFAULT_PORT = 25575
DEFAULT_TIMEOUT = 5.0
DEFAULT_MAX_BACKLOG = 1024

_PUT_POLL_INTERVAL = 0.25
_READER_JOIN_TIMEOUT = 1.0


class SessionState(Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


class RconSession:
    """One RCON connection: ``dial``, ``login``, ``run`` commands, ``close``.

    Not safe for concurrent ``run``/``close`` calls from several threads
    without external locking.
    """

    def __init__(self, *, max_backlog: int = DEFAULT_MAX_BACKLOG) -> None:
        self.messages: queue.Queue[str] = queue.Queue(maxsize=max_backlog)
        self.state = SessionState.UNAUTHENTICATED
        self.reader_error: Exception | None = None
        self._stream: TcpStream | None = None
        self._reader: threading.Thread | None = None
        self._closed = threading.Event()
        self._request_ids = itertools.count(1)

    @property
    def connected(self) -> bool:
        """Whether the session has an open connection."""
        return self._stream is not None

    def dial(
        self, host: str, port: int = DEFAULT_PORT, *, timeout: float = DEFAULT_TIMEOUT
    ) -> None:
        """Connect to the RCON port. A closed session may be dialed again."""
        if self._stream is not None:
            self.close()
        self._stream = dial_tcp(host, port, timeout)
        self._closed = threading.Event()
        self._request_ids = itertools.count(1)
        self.reader_error = None
        self.state = SessionState.UNAUTHENTICATED

    def login(self, password: str) -> None:
        """Authenticate and start the background reader.

        Raises:
            NotConnectedError: If :meth:`dial` has not been called.
            AlreadyLoggedInError: On a second login.
            InvalidPasswordError: If the server rejects the password.
            UnexpectedResponseError: If the reply is not a login response.
        """
        stream = self._require_stream()
        if self.state is SessionState.AUTHENTICATED:
            msg = "RCON session is already logged in"
            raise AlreadyLoggedInError(msg)

        self.state = SessionState.AUTHENTICATING
        try:
            stream.write(
                Packet(
                    request_id=LOGIN_REQUEST_ID,
                    packet_type=PacketType.LOGIN,
                    payload=password,
                ).encode()
            )
            response = read_packet(stream)
            _check_login_response(response)
        except BaseException:
            self.state = SessionState.UNAUTHENTICATED
            raise

        self.state = SessionState.AUTHENTICATED
        stream.set_timeout(None)
        self._reader = threading.Thread(
            target=self._read_loop,
            args=(stream, self._closed),
            name="rcon-reader",
            daemon=True,
        )
        self._reader.start()
        log.debug("RCON login succeeded, reader started")

    def run(self, command: str) -> int:
        """Send a command and return its request ID.

        Responses arrive on :attr:`messages`.
        """
        stream = self._require_stream()
        if self.state is not SessionState.AUTHENTICATED:
            msg = "RCON session is not logged in"
            raise NotLoggedInError(msg)
        if len(command.encode("utf-8")) > MAX_COMMAND_PAYLOAD:
            msg = f"Command exceeds {MAX_COMMAND_PAYLOAD} bytes"
            raise ValueError(msg)

        request_id = next(self._request_ids)
        stream.write(
            Packet(
                request_id=request_id,
                packet_type=PacketType.COMMAND,
                payload=command,
            ).encode()
        )
        return request_id

    def recv(self, timeout: float | None = None) -> str:
        """Pop the next response payload.

        Raises:
            DeadlineExceededError: If nothing arrives within ``timeout``.
        """
        try:
            return self.messages.get(timeout=timeout)
        except queue.Empty as e:
            msg = "No RCON response received"
            raise DeadlineExceededError(msg) from e

    def close(self) -> None:
        """Close the connection and stop the reader. Safe to call repeatedly."""
        self._closed.set()
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.close()
        self.state = SessionState.CLOSED

        reader, self._reader = self._reader, None
        if reader is not None and reader is not threading.current_thread():
            reader.join(_READER_JOIN_TIMEOUT)

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _require_stream(self) -> TcpStream:
        if self._stream is None:
            msg = "RCON session is not connected"
            raise NotConnectedError(msg)
        return self._stream

    def _read_loop(self, stream: TcpStream, closed: threading.Event) -> None:
        try:
            while not closed.is_set():
                packet = read_packet(stream)
                if packet.packet_type != PacketType.RESPONSE:
                    msg = f"Expected RCON response type 0, got {packet.packet_type}"
                    raise UnexpectedResponseError(msg)
                self._publish(packet.payload, closed)
        except ConnectionClosedError:
            log.debug("RCON reader stopped: connection closed")
        except OSError as e:
            if closed.is_set():
                log.debug("RCON reader stopped: session closed")
            else:
                log.warning("RCON reader failed: %s", e)
                self.reader_error = e
        except McProbeError as e:
            log.warning("RCON reader failed: %s", e)
            self.reader_error = e

    def _publish(self, payload: str, closed: threading.Event) -> None:
        while not closed.is_set():
            try:
                self.messages.put(payload, timeout=_PUT_POLL_INTERVAL)
            except queue.Full:
                continue
            return


def _check_login_response(response: Packet) -> None:
    if response.request_id == AUTH_FAILED_REQUEST_ID:
        msg = "Authentication failed: incorrect RCON password"
        raise InvalidPasswordError(msg)
    if (
        response.packet_type != PacketType.AUTH_RESPONSE
        or response.request_id != LOGIN_REQUEST_ID
    ):
        msg = (
            "Unexpected login response: "
            f"type={response.packet_type} request_id={response.request_id}"
        )
        raise UnexpectedResponseError(msg)
