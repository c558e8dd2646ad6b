"""Tests for the legacy (pre-1.7) server list ping."""

import pytest
from conftest import SocketReader

from mcprobe.errors import MalformedFieldError, UnexpectedResponseError
from mcprobe.legacy import parse_legacy_response, status_legacy

MODERN = "§1\x0047\x001.4.2\x00A Minecraft Server\x000\x0020"


def _kick(text: str, packet_id: int = 0xFF) -> bytes:
    encoded = text.encode("utf-16-be")
    return bytes([packet_id]) + (len(encoded) // 2).to_bytes(2, "big") + encoded


class TestParseLegacyResponse:
    def test_modern_layout(self):
        result = parse_legacy_response(MODERN)

        assert result.version.protocol == 47
        assert result.version.name == "1.4.2"
        assert str(result.motd) == "A Minecraft Server"
        assert result.players.online == 0
        assert result.players.max == 20

    def test_pre_14_layout(self):
        result = parse_legacy_response("A Minecraft Server§3§20")

        assert result.version is None
        assert result.players.online == 3
        assert result.players.max == 20

    def test_pre_14_motd_keeps_formatting(self):
        result = parse_legacy_response("§aGreen MOTD§3§10")

        assert str(result.motd) == "Green MOTD"
        assert result.motd.runs[0].color == "green"
        assert result.players.max == 10

    def test_modern_wrong_field_count(self):
        with pytest.raises(MalformedFieldError, match="6"):
            parse_legacy_response("§1\x0047\x001.4.2")

    def test_pre_14_wrong_field_count(self):
        with pytest.raises(MalformedFieldError):
            parse_legacy_response("no separators")

    def test_non_numeric_players(self):
        with pytest.raises(MalformedFieldError, match="online players"):
            parse_legacy_response("MOTD§lots§20")


class TestStatusLegacy:
    def test_loopback(self, tcp_server):
        received = {}

        def handler(conn):
            reader = SocketReader(conn)
            received["request"] = reader.read(2)
            conn.sendall(_kick(MODERN))

        host, port = tcp_server(handler)

        result = status_legacy(host, port, timeout=5.0)

        assert received["request"] == b"\xfe\x01"
        assert result.players.max == 20
        assert result.version.name == "1.4.2"

    def test_not_a_kick_packet(self, tcp_server):
        def handler(conn):
            reader = SocketReader(conn)
            reader.read(2)
            conn.sendall(_kick(MODERN, packet_id=0x00))
            reader.drain()

        host, port = tcp_server(handler)

        with pytest.raises(UnexpectedResponseError, match="0xFF"):
            status_legacy(host, port, timeout=5.0)
