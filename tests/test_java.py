"""Tests for the Java Edition server list ping."""

import base64
import json

import pytest
from conftest import SocketReader

from mcprobe.errors import (
    ConnectionClosedError,
    DeadlineExceededError,
    MalformedFieldError,
    McProbeError,
    UnexpectedResponseError,
)
from mcprobe.java import build_handshake, parse_status_json, status
from mcprobe.srv import SrvRecord
from mcprobe.wire import Buffer, PacketWriter, read_varint

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 8

STATUS = {
    "version": {"name": "1.20.4", "protocol": 765},
    "players": {
        "max": 20,
        "online": 3,
        "sample": [{"name": "Notch", "id": "069a79f4-44e9-4726-a5be-fca90e38aaf5"}],
    },
    "description": {
        "text": "A ",
        "extra": [{"text": "Minecraft Server", "color": "green", "bold": "true"}],
    },
    "favicon": "data:image/png;base64," + base64.b64encode(PNG).decode(),
}


def _read_frame(reader: SocketReader) -> Buffer:
    length, _ = read_varint(reader)
    return Buffer(reader.read(length))


def _slp_handler(payload: str, received: dict, *, pong_offset=0, status_id=0x00):
    """Server side of the exchange: handshake, status, then echo the ping."""

    def handler(conn):
        reader = SocketReader(conn)
        received["handshake"] = _read_frame(reader)
        received["request"] = _read_frame(reader)
        conn.sendall(
            PacketWriter().write_varint(status_id).write_string(payload).framed()
        )
        if status_id != 0x00:
            reader.drain()
            return

        ping = _read_frame(reader)
        assert ping.read_varint() == 0x01
        echoed = ping.read_int64() + pong_offset
        conn.sendall(PacketWriter().write_varint(0x01).write_int64(echoed).framed())

    return handler


class TestStatusExchange:
    def test_loopback_status(self, tcp_server):
        received = {}
        host, port = tcp_server(_slp_handler(json.dumps(STATUS), received))

        result = status(host, port, timeout=5.0, enable_srv=False)

        assert result.players.online == 3
        assert result.players.max == 20
        assert result.players.sample[0].name == "Notch"
        assert str(result.motd) == "A Minecraft Server"
        assert result.latency >= 0
        assert result.version.protocol == 765
        assert result.srv_record is None
        assert result.favicon.data() == PNG

    def test_handshake_and_request(self, tcp_server):
        received = {}
        host, port = tcp_server(_slp_handler(json.dumps(STATUS), received))

        status(host, port, timeout=5.0, protocol_version=760)

        handshake = received["handshake"]
        assert handshake.read_varint() == 0x00
        assert handshake.read_varint() == 760
        assert handshake.read_string() == host
        assert handshake.read_uint16() == port
        assert handshake.read_varint() == 1
        assert handshake.remaining == 0
        assert received["request"].read_rest() == b"\x00"

    def test_wrong_packet_id(self, tcp_server):
        host, port = tcp_server(_slp_handler("{}", {}, status_id=0x05))

        with pytest.raises(UnexpectedResponseError, match="0x05"):
            status(host, port, timeout=5.0)

    def test_pong_mismatch(self, tcp_server):
        host, port = tcp_server(_slp_handler(json.dumps(STATUS), {}, pong_offset=-1))

        with pytest.raises(UnexpectedResponseError, match="does not match"):
            status(host, port, timeout=5.0)

    def test_server_hangs_up(self, tcp_server):
        def handler(conn):
            reader = SocketReader(conn)
            _read_frame(reader)
            _read_frame(reader)

        host, port = tcp_server(handler)

        with pytest.raises(ConnectionClosedError):
            status(host, port, timeout=5.0)

    def test_invalid_utf8_status(self, tcp_server):
        def handler(conn):
            reader = SocketReader(conn)
            _read_frame(reader)
            _read_frame(reader)
            body = PacketWriter().write_varint(0x00).write_varint(3)
            conn.sendall(body.write(b"\xff\xfe{").framed())
            reader.drain()

        host, port = tcp_server(handler)

        with pytest.raises(McProbeError) as exc_info:
            status(host, port, timeout=5.0)

        assert isinstance(exc_info.value, MalformedFieldError)

    def test_deadline(self, tcp_server):
        host, port = tcp_server(lambda conn: SocketReader(conn).drain())

        with pytest.raises(DeadlineExceededError):
            status(host, port, timeout=0.2)

    def test_deadline_is_a_timeout_error(self, tcp_server):
        host, port = tcp_server(lambda conn: SocketReader(conn).drain())

        with pytest.raises(TimeoutError):
            status(host, port, timeout=0.2)


class TestBuildHandshake:
    def test_layout(self):
        data = build_handshake("localhost", 25565, 47)
        assert data == b"\x0f\x00\x2f\x09localhost\x63\xdd\x01"


class TestParseStatusJson:
    def test_full_payload(self):
        record = SrvRecord(host="mc.example.com", port=25566)
        result = parse_status_json(json.dumps(STATUS), srv_record=record, latency=12.5)

        assert result.version.name == "1.20.4"
        assert result.motd.runs[1].color == "green"
        assert result.motd.runs[1].bold
        assert result.srv_record == record
        assert result.latency == 12.5
        assert result.mod_info is None

    def test_legacy_string_description(self):
        result = parse_status_json(json.dumps({"description": "§aHello"}))
        assert result.motd.to_plain() == "Hello"
        assert result.motd.runs[0].color == "green"

    def test_missing_sections_default(self):
        result = parse_status_json("{}")

        assert result.players.online == 0
        assert result.players.sample == ()
        assert result.version.name == ""
        assert not result.favicon.exists
        assert str(result.motd) == ""

    def test_forge_mod_info(self):
        data = {
            "modinfo": {
                "type": "FML",
                "modList": [
                    {"modid": "minecraft", "version": "1.12.2"},
                    {"modid": "jei", "version": "4.16.1"},
                ],
            }
        }
        result = parse_status_json(json.dumps(data))

        assert result.mod_info.type == "FML"
        assert [mod.modid for mod in result.mod_info.mods] == ["minecraft", "jei"]

    def test_invalid_json(self):
        with pytest.raises(MalformedFieldError, match="not valid JSON"):
            parse_status_json("{not json")

    def test_not_an_object(self):
        with pytest.raises(MalformedFieldError):
            parse_status_json("[]")

    def test_non_numeric_player_count(self):
        payload = json.dumps({"players": {"online": "three", "max": 20}})
        with pytest.raises(MalformedFieldError, match="online"):
            parse_status_json(payload)
