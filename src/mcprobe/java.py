"""Java Edition Server List Ping (1.7+).

Exchange over one TCP connection:

1. Handshake: ``[0x00][protocol:varint][host:string][port:u16][next_state=1]``
2. Status request: ``[0x00]``
3. Status response: ``[0x00][json:string]``
4. Ping: ``[0x01][payload:i64]``
5. Pong: ``[0x01][payload:i64]`` echoing the ping payload

Every packet is framed as ``[length:varint][packet]``.
"""

from __future__ import annotations

import json
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any

from mcprobe.connection import TcpStream, dial_tcp
from mcprobe.errors import MalformedFieldError, UnexpectedResponseError
from mcprobe.favicon import Favicon
from mcprobe.formatting import Motd
from mcprobe.srv import SrvRecord, resolve_target
from mcprobe.wire import Buffer, PacketWriter, read_varint

log = logging.getLogger(__name__)

DEFAULT_PORT = 25565
DEFAULT_PROTOCOL_VERSION = 47
DEFAULT_TIMEOUT = 5.0

HANDSHAKE_PACKET = 0x00
STATUS_PACKET = 0x00
PING_PACKET = 0x01
NEXT_STATE_STATUS = 1


@dataclass(frozen=True)
class Version:
    name: str
    protocol: int


@dataclass(frozen=True)
class SamplePlayer:
    name: str
    id: str


@dataclass(frozen=True)
class Players:
    online: int
    max: int
    sample: tuple[SamplePlayer, ...] = ()


@dataclass(frozen=True)
class Mod:
    modid: str
    version: str


@dataclass(frozen=True)
class ModInfo:
    """Forge mod list (``modinfo`` in the status JSON)."""

    type: str
    mods: tuple[Mod, ...] = ()


@dataclass(frozen=True)
class JavaStatus:
    """Status of a Java Edition server."""

    version: Version
    players: Players
    motd: Motd
    favicon: Favicon = field(default_factory=Favicon)
    srv_record: SrvRecord | None = None
    latency: float = 0.0
    mod_info: ModInfo | None = None


def _int_field(obj: dict[str, Any], key: str) -> int:
    value = obj.get(key, 0)
    if isinstance(value, bool) or not isinstance(value, int):
        msg = f"Expected an integer for {key!r}, got {value!r}"
        raise MalformedFieldError(msg)
    return value


def _object_field(obj: dict[str, Any], key: str) -> dict[str, Any]:
    value = obj.get(key) or {}
    if not isinstance(value, dict):
        msg = f"Expected an object for {key!r}, got {value!r}"
        raise MalformedFieldError(msg)
    return value


def _parse_mod_info(raw: Any) -> ModInfo | None:
    if not isinstance(raw, dict):
        return None
    mods = tuple(
        Mod(modid=str(entry.get("modid", "")), version=str(entry.get("version", "")))
        for entry in raw.get("modList") or []
        if isinstance(entry, dict)
    )
    return ModInfo(type=str(raw.get("type", "")), mods=mods)


def parse_status_json(
    payload: str, *, srv_record: SrvRecord | None = None, latency: float = 0.0
) -> JavaStatus:
    """Build a :class:`JavaStatus` from the status response JSON.

    Raises:
        MalformedFieldError: If the payload is not a JSON object of the
            expected shape.
    """
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        msg = f"Status response is not valid JSON: {e}"
        raise MalformedFieldError(msg) from e
    if not isinstance(data, dict):
        msg = "Status response is not a JSON object"
        raise MalformedFieldError(msg)

    version = _object_field(data, "version")
    players = _object_field(data, "players")
    sample = tuple(
        SamplePlayer(name=str(entry.get("name", "")), id=str(entry.get("id", "")))
        for entry in players.get("sample") or []
        if isinstance(entry, dict)
    )

    return JavaStatus(
        version=Version(
            name=str(version.get("name", "")),
            protocol=_int_field(version, "protocol"),
        ),
        players=Players(
            online=_int_field(players, "online"),
            max=_int_field(players, "max"),
            sample=sample,
        ),
        motd=Motd.parse(data.get("description")),
        favicon=Favicon.from_json(data.get("favicon")),
        srv_record=srv_record,
        latency=latency,
        mod_info=_parse_mod_info(data.get("modinfo")),
    )


def build_handshake(host: str, port: int, protocol_version: int) -> bytes:
    """Encode the framed handshake packet asking for the status state."""
    return (
        PacketWriter()
        .write_varint(HANDSHAKE_PACKET)
        .write_varint(protocol_version)
        .write_string(host)
        .write_uint16(port)
        .write_varint(NEXT_STATE_STATUS)
        .framed()
    )


def read_packet(stream: TcpStream) -> tuple[int, Buffer]:
    """Read one framed packet and return ``(packet_id, body)``."""
    length, _ = read_varint(stream)
    body = Buffer(stream.read(length))
    return body.read_varint(), body


def status(
    host: str,
    port: int = DEFAULT_PORT,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    enable_srv: bool = True,
    protocol_version: int = DEFAULT_PROTOCOL_VERSION,
) -> JavaStatus:
    """Retrieve the status of a Java Edition server.

    Args:
        host: Server hostname or IP address.
        port: Server port.
        timeout: Deadline in seconds for the whole exchange.
        enable_srv: Follow a ``_minecraft._tcp`` SRV record if one exists.
        protocol_version: Protocol number sent in the handshake.

    Raises:
        UnexpectedResponseError: On a wrong packet ID or pong payload.
        MalformedFieldError: If the status JSON cannot be parsed.
        DeadlineExceededError: If the server does not answer in time.
    """
    host, port, srv_record = resolve_target(
        host, port, enable_srv=enable_srv, timeout=timeout
    )

    with dial_tcp(host, port, timeout) as stream:
        stream.write(build_handshake(host, port, protocol_version))
        stream.write(PacketWriter().write_varint(STATUS_PACKET).framed())

        packet_id, body = read_packet(stream)
        if packet_id != STATUS_PACKET:
            msg = f"Expected status response packet 0x00, got {packet_id:#04x}"
            raise UnexpectedResponseError(msg)
        payload = body.read_string()
        log.debug("Status response from %s:%d: %d bytes", host, port, len(payload))

        ping_payload = random.getrandbits(63)
        stream.write(
            PacketWriter()
            .write_varint(PING_PACKET)
            .write_int64(ping_payload)
            .framed()
        )
        sent_at = time.perf_counter()

        packet_id, body = read_packet(stream)
        latency = (time.perf_counter() - sent_at) * 1000
        if packet_id != PING_PACKET:
            msg = f"Expected pong packet 0x01, got {packet_id:#04x}"
            raise UnexpectedResponseError(msg)
        echoed = body.read_int64()
        if echoed != ping_payload:
            msg = f"Pong payload {echoed} does not match ping {ping_payload}"
            raise UnexpectedResponseError(msg)

    return parse_status_json(payload, srv_record=srv_record, latency=latency)
