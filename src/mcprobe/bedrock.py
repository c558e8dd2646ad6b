"""Bedrock Edition status via a RakNet unconnected ping."""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass

from mcprobe.connection import dial_udp
from mcprobe.errors import UnexpectedResponseError
from mcprobe.formatting import Motd
from mcprobe.srv import SrvRecord, resolve_target
from mcprobe.wire import Buffer, PacketWriter, parse_decimal

log = logging.getLogger(__name__)

DEFAULT_PORT = 19132
DEFAULT_TIMEOUT = 5.0

UNCONNECTED_PING = 0x01
UNCONNECTED_PONG = 0x1C
RAKNET_MAGIC = bytes.fromhex("00ffff00fefefefefdfdfdfd12345678")


@dataclass(frozen=True)
class BedrockStatus:
    """Status of a Bedrock server.

    Servers often omit trailing fields of the pong string; anything not sent
    is ``None``.
    """

    server_guid: int
    edition: str
    motd: Motd
    protocol_version: int | None = None
    version: str | None = None
    online_players: int | None = None
    max_players: int | None = None
    server_id: int | None = None
    gamemode: str | None = None
    gamemode_id: int | None = None
    port_ipv4: int | None = None
    port_ipv6: int | None = None
    srv_record: SrvRecord | None = None


def build_ping(client_guid: int, timestamp_ms: int | None = None) -> bytes:
    if timestamp_ms is None:
        timestamp_ms = time.time_ns() // 1_000_000
    return (
        PacketWriter()
        .write_byte(UNCONNECTED_PING)
        .write_int64(timestamp_ms)
        .write(RAKNET_MAGIC)
        .write_int64(client_guid)
        .getvalue()
    )


def _number(fields: list[str], index: int, name: str) -> int | None:
    if index >= len(fields) or not fields[index]:
        return None
    return parse_decimal(fields[index], name)


def _text(fields: list[str], index: int) -> str | None:
    return fields[index] if index < len(fields) else None


def parse_server_id(
    server_guid: int, server_id: str, *, srv_record: SrvRecord | None = None
) -> BedrockStatus:
    """Split the ``;``-separated pong string.

    Field order: edition, MOTD line 1, protocol, version, online, max,
    server ID, MOTD line 2, gamemode, gamemode ID, IPv4 port, IPv6 port.

    Raises:
        MalformedFieldError: If a numeric field that is present is not a number.
    """
    fields = server_id.split(";")
    motd_lines = [
        line for line in (_text(fields, 1), _text(fields, 7)) if line is not None
    ]

    return BedrockStatus(
        server_guid=server_guid,
        edition=fields[0],
        motd=Motd.parse("\n".join(motd_lines)),
        protocol_version=_number(fields, 2, "protocol version"),
        version=_text(fields, 3),
        online_players=_number(fields, 4, "online players"),
        max_players=_number(fields, 5, "max players"),
        server_id=_number(fields, 6, "server ID"),
        gamemode=_text(fields, 8),
        gamemode_id=_number(fields, 9, "gamemode ID"),
        port_ipv4=_number(fields, 10, "IPv4 port"),
        port_ipv6=_number(fields, 11, "IPv6 port"),
        srv_record=srv_record,
    )


def parse_pong(
    packet: Buffer, *, srv_record: SrvRecord | None = None
) -> BedrockStatus:
    packet_id = packet.read_byte()
    if packet_id != UNCONNECTED_PONG:
        msg = f"Expected unconnected pong 0x1C, got {packet_id:#04x}"
        raise UnexpectedResponseError(msg)
    packet.skip(8)  # echoed time
    server_guid = packet.read_int64()
    packet.skip(len(RAKNET_MAGIC))
    length = packet.read_uint16()
    server_id = packet.read(length).decode("utf-8", errors="replace")
    return parse_server_id(server_guid, server_id, srv_record=srv_record)


def status_bedrock(
    host: str,
    port: int = DEFAULT_PORT,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    enable_srv: bool = True,
    client_guid: int | None = None,
) -> BedrockStatus:
    """Retrieve the status of a Bedrock Edition server.

    Args:
        host: Server hostname or IP address.
        port: Server port.
        timeout: Deadline in seconds for the exchange.
        enable_srv: Follow a ``_minecraft._tcp`` SRV record if one exists.
        client_guid: GUID identifying this client; random when omitted.
    """
    host, port, srv_record = resolve_target(
        host, port, enable_srv=enable_srv, timeout=timeout
    )
    if client_guid is None:
        client_guid = random.getrandbits(63)

    with dial_udp(host, port, timeout) as stream:
        stream.write(build_ping(client_guid))
        data = stream.recv()

    log.debug("Unconnected pong from %s:%d: %d bytes", host, port, len(data))
    return parse_pong(Buffer(data), srv_record=srv_record)
