"""GameSpy4-style UDP Query (``enable-query=true`` in server.properties).

Handshake:  ``[FE FD][09][session:i32]`` ->
            ``[09][session:i32][challenge token: decimal ASCII, NUL]``
Basic stat: ``[FE FD][00][session:i32][token:i32]`` ->
            ``[00][session:i32][motd\\0][gametype\\0][map\\0][online\\0][max\\0]
            [hostport:u16 LE][hostip\\0]``
Full stat:  basic stat request plus 4 zero bytes ->
            ``[00][session:i32][11 padding][key\\0value\\0]...[\\0]
            [10 padding][player\\0]...[\\0]``
"""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass, field

from mcprobe.connection import UdpStream, dial_udp
from mcprobe.errors import MalformedFieldError, UnexpectedResponseError
from mcprobe.formatting import Motd
from mcprobe.wire import Buffer, PacketWriter, parse_decimal

log = logging.getLogger(__name__)

DEFAULT_PORT = 25565
DEFAULT_TIMEOUT = 5.0

MAGIC = b"\xfe\xfd"
HANDSHAKE_TYPE = 0x09
STAT_TYPE = 0x00
SESSION_ID_MASK = 0x0F0F0F0F
FULL_STAT_PADDING = b"\x00\x00\x00\x00"
KV_SECTION_PADDING = 11
PLAYER_SECTION_PADDING = 10
INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1


class SessionIdGenerator:
    """Thread-safe source of query session IDs."""

    def __init__(self, start: int = 1) -> None:
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def __call__(self) -> int:
        with self._lock:
            return next(self._counter) & 0x7FFFFFFF


_default_session_ids = SessionIdGenerator()


@dataclass(frozen=True)
class BasicQueryResponse:
    motd: Motd
    game_type: str
    map: str
    online_players: int
    max_players: int
    host_port: int
    host_ip: str


@dataclass(frozen=True)
class FullQueryResponse:
    """Key/value data (``hostname``, ``version``, ``plugins``, ...) and player names."""

    data: dict[str, str] = field(default_factory=dict)
    players: list[str] = field(default_factory=list)

    @property
    def motd(self) -> Motd:
        return Motd.parse(self.data.get("hostname", ""))


def _latin1(data: bytes) -> str:
    # Each byte maps to the code point of the same value.
    return data.decode("latin-1")


def _check_header(packet: Buffer, expected_type: int, session_id: int) -> None:
    packet_type = packet.read_byte()
    if packet_type != expected_type:
        msg = f"Expected query packet type {expected_type:#04x}, got {packet_type:#04x}"
        raise UnexpectedResponseError(msg)
    echoed = packet.read_int32()
    if echoed != session_id:
        msg = f"Session ID mismatch: sent {session_id}, got {echoed}"
        raise UnexpectedResponseError(msg)


def _request(packet_type: int, session_id: int) -> PacketWriter:
    return PacketWriter().write(MAGIC).write_byte(packet_type).write_int32(session_id)


def handshake(stream: UdpStream, session_id: int) -> int:
    """Run the handshake and return the challenge token."""
    stream.write(_request(HANDSHAKE_TYPE, session_id).getvalue())
    packet = Buffer(stream.recv())
    _check_header(packet, HANDSHAKE_TYPE, session_id)
    token = parse_decimal(packet.read_null_terminated(), "challenge token")
    if not INT32_MIN <= token <= INT32_MAX:
        msg = f"Challenge token out of int32 range: {token}"
        raise MalformedFieldError(msg)
    log.debug("Query challenge token: %d", token)
    return token


def parse_basic_stat(packet: Buffer, session_id: int) -> BasicQueryResponse:
    _check_header(packet, STAT_TYPE, session_id)
    motd = _latin1(packet.read_null_terminated())
    game_type = _latin1(packet.read_null_terminated())
    game_map = _latin1(packet.read_null_terminated())
    online = parse_decimal(packet.read_null_terminated(), "online players")
    maximum = parse_decimal(packet.read_null_terminated(), "max players")
    host_port = packet.read_uint16("little")
    host_ip = _latin1(packet.read_null_terminated())
    return BasicQueryResponse(
        motd=Motd.parse(motd),
        game_type=game_type,
        map=game_map,
        online_players=online,
        max_players=maximum,
        host_port=host_port,
        host_ip=host_ip,
    )


def parse_key_values(packet: Buffer) -> dict[str, str]:
    """Read ``key\\0value\\0`` pairs until an empty key. Later keys win."""
    data: dict[str, str] = {}
    while key := packet.read_null_terminated():
        data[_latin1(key)] = _latin1(packet.read_null_terminated())
    return data


def parse_players(packet: Buffer) -> list[str]:
    """Read ``name\\0`` entries until an empty name."""
    players = []
    while name := packet.read_null_terminated():
        players.append(_latin1(name))
    return players


def parse_full_stat(packet: Buffer, session_id: int) -> FullQueryResponse:
    _check_header(packet, STAT_TYPE, session_id)
    packet.skip(KV_SECTION_PADDING)
    data = parse_key_values(packet)
    packet.skip(PLAYER_SECTION_PADDING)
    players = parse_players(packet)
    return FullQueryResponse(data=data, players=players)


def _resolve_session_id(
    session_id: int | None, session_ids: SessionIdGenerator | None
) -> int:
    if session_id is None:
        session_id = (session_ids or _default_session_ids)()
    return session_id & SESSION_ID_MASK


def basic_query(
    host: str,
    port: int = DEFAULT_PORT,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    session_id: int | None = None,
    session_ids: SessionIdGenerator | None = None,
) -> BasicQueryResponse:
    """Run a basic stat query.

    Args:
        host: Server hostname or IP address.
        port: Query port.
        timeout: Deadline in seconds for the whole exchange.
        session_id: Explicit session ID; masked with ``0x0F0F0F0F``.
        session_ids: Generator used when ``session_id`` is not given.
    """
    sid = _resolve_session_id(session_id, session_ids)
    with dial_udp(host, port, timeout) as stream:
        token = handshake(stream, sid)
        stream.write(_request(STAT_TYPE, sid).write_int32(token).getvalue())
        return parse_basic_stat(Buffer(stream.recv()), sid)


def full_query(
    host: str,
    port: int = DEFAULT_PORT,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    session_id: int | None = None,
    session_ids: SessionIdGenerator | None = None,
) -> FullQueryResponse:
    """Run a full stat query. Arguments match :func:`basic_query`."""
    sid = _resolve_session_id(session_id, session_ids)
    with dial_udp(host, port, timeout) as stream:
        token = handshake(stream, sid)
        stream.write(
            _request(STAT_TYPE, sid)
            .write_int32(token)
            .write(FULL_STAT_PADDING)
            .getvalue()
        )
        return parse_full_stat(Buffer(stream.recv()), sid)
