"""Minecraft RCON wire protocol encoding and decoding."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from mcprobe.errors import MalformedFieldError
from mcprobe.wire import Buffer, PacketWriter, Reader


class PacketType(IntEnum):
    """RCON packet types.

    The server answers a login with type 2, the same value as a command.
    """

    RESPONSE = 0
    COMMAND = 2
    AUTH_RESPONSE = 2
    LOGIN = 3


# 4 bytes each for request_id and type, plus the NUL terminator and padding byte
MIN_BODY_SIZE = 10
MAX_COMMAND_PAYLOAD = 1446
LOGIN_REQUEST_ID = 0
AUTH_FAILED_REQUEST_ID = -1


@dataclass(frozen=True)
class Packet:
    """A single RCON packet.

    Wire format: [length:i32][request_id:i32][type:i32][payload\\0\\0], all
    little-endian. Length covers everything after itself.
    """

    request_id: int
    packet_type: int
    payload: str

    def encode(self) -> bytes:
        """Encode the packet into bytes for transmission."""
        payload_bytes = self.payload.encode("utf-8")
        body = (
            PacketWriter()
            .write_int32(self.request_id, "little")
            .write_int32(self.packet_type, "little")
            .write_null_terminated(payload_bytes)
            .write_byte(0)
            .getvalue()
        )
        return PacketWriter().write_int32(len(body), "little").write(body).getvalue()

    @classmethod
    def decode(cls, data: bytes) -> Packet:
        """Decode a packet from raw bytes (excluding the 4-byte length prefix).

        The caller is responsible for reading the 4-byte length prefix and then
        reading exactly that many bytes before passing them here.
        """
        body = Buffer(data)
        request_id = body.read_int32("little")
        packet_type = body.read_int32("little")
        payload = body.read_null_terminated().decode("utf-8", errors="replace")
        return cls(
            request_id=request_id,
            packet_type=packet_type,
            payload=payload,
        )


def read_packet(reader: Reader) -> Packet:
    """Read one length-prefixed packet from a stream."""
    length = Buffer(reader.read(4)).read_int32("little")
    if length < MIN_BODY_SIZE:
        msg = f"RCON packet length {length} is shorter than {MIN_BODY_SIZE}"
        raise MalformedFieldError(msg)
    return Packet.decode(reader.read(length))
