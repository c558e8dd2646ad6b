"""Legacy Server List Ping for Java servers older than 1.7.

Request: ``0xFE 0x01``.
Response: ``[0xFF][length:u16 BE][UTF-16BE text, length code units]``.

1.4+ servers answer ``§1\\0protocol\\0version\\0motd\\0online\\0max``;
older servers answer ``motd§online§max``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from mcprobe.connection import dial_tcp
from mcprobe.errors import MalformedFieldError, UnexpectedResponseError
from mcprobe.formatting import Motd
from mcprobe.srv import SrvRecord, resolve_target
from mcprobe.wire import Buffer, parse_decimal

log = logging.getLogger(__name__)

DEFAULT_PORT = 25565
DEFAULT_TIMEOUT = 5.0

LEGACY_REQUEST = b"\xfe\x01"
KICK_PACKET = 0xFF
MODERN_MARKER = "§1"


@dataclass(frozen=True)
class LegacyVersion:
    name: str
    protocol: int


@dataclass(frozen=True)
class LegacyPlayers:
    online: int
    max: int


@dataclass(frozen=True)
class LegacyJavaStatus:
    """Status of a pre-1.7 Java server. ``version`` is absent before 1.4."""

    version: LegacyVersion | None
    players: LegacyPlayers
    motd: Motd
    srv_record: SrvRecord | None = None


def parse_legacy_response(
    text: str, *, srv_record: SrvRecord | None = None
) -> LegacyJavaStatus:
    """Split a decoded kick message into its fields."""
    if text.startswith(MODERN_MARKER):
        fields = text.split("\x00")
        if len(fields) != 6:  # noqa: PLR2004
            msg = f"Expected 6 NUL-separated fields, got {len(fields)}"
            raise MalformedFieldError(msg)
        _, protocol, version_name, motd, online, maximum = fields
        return LegacyJavaStatus(
            version=LegacyVersion(
                name=version_name, protocol=parse_decimal(protocol, "protocol")
            ),
            players=LegacyPlayers(
                online=parse_decimal(online, "online players"),
                max=parse_decimal(maximum, "max players"),
            ),
            motd=Motd.parse(motd),
            srv_record=srv_record,
        )

    # Split from the right so a MOTD containing § survives.
    fields = text.rsplit("§", 2)
    if len(fields) != 3:  # noqa: PLR2004
        msg = f"Expected 3 §-separated fields, got {len(fields)}"
        raise MalformedFieldError(msg)
    motd, online, maximum = fields
    return LegacyJavaStatus(
        version=None,
        players=LegacyPlayers(
            online=parse_decimal(online, "online players"),
            max=parse_decimal(maximum, "max players"),
        ),
        motd=Motd.parse(motd),
        srv_record=srv_record,
    )


def status_legacy(
    host: str,
    port: int = DEFAULT_PORT,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    enable_srv: bool = True,
) -> LegacyJavaStatus:
    """Retrieve the status of a legacy (pre-1.7) Java server.

    Raises:
        UnexpectedResponseError: If the response is not a kick packet.
        MalformedFieldError: If the fields cannot be split or parsed.
    """
    host, port, srv_record = resolve_target(
        host, port, enable_srv=enable_srv, timeout=timeout
    )

    with dial_tcp(host, port, timeout) as stream:
        stream.write(LEGACY_REQUEST)

        packet_id = stream.read(1)[0]
        if packet_id != KICK_PACKET:
            msg = f"Expected kick packet 0xFF, got {packet_id:#04x}"
            raise UnexpectedResponseError(msg)

        length = Buffer(stream.read(2)).read_uint16()
        data = stream.read(length * 2)

    log.debug("Legacy response from %s:%d: %d code units", host, port, length)
    text = data.decode("utf-16-be", errors="replace")
    return parse_legacy_response(text, srv_record=srv_record)
