"""Tests for the shared wire primitives."""

import struct

import pytest

from mcprobe.errors import MalformedFieldError, TruncatedInputError, VarIntTooBigError
from mcprobe.wire import (
    Buffer,
    PacketWriter,
    encode_string,
    encode_varint,
    encode_varlong,
    frame,
    parse_decimal,
    read_string,
    read_varint,
    read_varlong,
)

VARINT_CASES = [
    (0, b"\x00"),
    (1, b"\x01"),
    (127, b"\x7f"),
    (128, b"\x80\x01"),
    (255, b"\xff\x01"),
    (25565, b"\xdd\xc7\x01"),
    (2097151, b"\xff\xff\x7f"),
    (2147483647, b"\xff\xff\xff\xff\x07"),
    (-1, b"\xff\xff\xff\xff\x0f"),
    (-2147483648, b"\x80\x80\x80\x80\x08"),
]


class TestVarInt:
    @pytest.mark.parametrize(("value", "encoded"), VARINT_CASES)
    def test_encode(self, value, encoded):
        assert encode_varint(value) == encoded

    @pytest.mark.parametrize(("value", "encoded"), VARINT_CASES)
    def test_decode(self, value, encoded):
        assert read_varint(Buffer(encoded)) == (value, len(encoded))

    def test_decode_stops_at_last_byte(self):
        buf = Buffer(b"\x80\x01\xaa")
        assert buf.read_varint() == 128
        assert buf.remaining == 1

    def test_six_continuation_bytes(self):
        with pytest.raises(VarIntTooBigError):
            read_varint(Buffer(b"\x80\x80\x80\x80\x80\x80"))

    def test_truncated(self):
        with pytest.raises(TruncatedInputError):
            read_varint(Buffer(b"\x80\x80"))

    def test_round_trip_across_int32_range(self):
        for value in range(-(2**31), 2**31, 2**31 // 97):
            encoded = encode_varint(value)
            assert len(encoded) <= 5
            assert read_varint(Buffer(encoded)) == (value, len(encoded))

    def test_out_of_range(self):
        with pytest.raises(ValueError, match="32-bit"):
            encode_varint(2**31)


class TestVarLong:
    def test_minus_one(self):
        assert encode_varlong(-1) == b"\xff" * 9 + b"\x01"
        assert read_varlong(Buffer(b"\xff" * 9 + b"\x01")) == (-1, 10)

    def test_large_value(self):
        value = 2**62 + 5
        assert read_varlong(Buffer(encode_varlong(value)))[0] == value

    def test_eleven_bytes(self):
        with pytest.raises(VarIntTooBigError):
            read_varlong(Buffer(b"\x80" * 11))


class TestStrings:
    def test_encode_prefixes_byte_length(self):
        # "§" is two bytes in UTF-8
        assert encode_string("§a") == b"\x03\xc2\xa7a"

    def test_read_string(self):
        assert read_string(Buffer(b"\x05hello")) == "hello"

    def test_read_string_short(self):
        with pytest.raises(TruncatedInputError):
            read_string(Buffer(b"\x05hel"))

    def test_read_string_invalid_utf8(self):
        with pytest.raises(MalformedFieldError, match="UTF-8"):
            read_string(Buffer(b"\x03\xff\xfe{"))

    def test_frame(self):
        assert frame(b"\x00\x01") == b"\x02\x00\x01"


class TestBuffer:
    def test_fixed_width_big_endian(self):
        buf = Buffer(struct.pack(">hHiq", -2, 65535, -5, 2**40))
        assert buf.read_int16() == -2
        assert buf.read_uint16() == 65535
        assert buf.read_int32() == -5
        assert buf.read_int64() == 2**40
        assert buf.remaining == 0

    def test_fixed_width_little_endian(self):
        buf = Buffer(struct.pack("<Hi", 25565, -1))
        assert buf.read_uint16("little") == 25565
        assert buf.read_int32("little") == -1

    def test_floats(self):
        buf = Buffer(struct.pack(">f", 1.5) + struct.pack("<d", -0.25))
        assert buf.read_float32() == 1.5
        assert buf.read_float64("little") == -0.25

    def test_short_read(self):
        with pytest.raises(TruncatedInputError):
            Buffer(b"\x00\x01").read_int32()

    def test_null_terminated(self):
        buf = Buffer(b"abc\x00\x00rest")
        assert buf.read_null_terminated() == b"abc"
        assert buf.read_null_terminated() == b""
        assert buf.read_rest() == b"rest"

    def test_null_terminated_missing_sentinel(self):
        with pytest.raises(TruncatedInputError):
            Buffer(b"abc").read_null_terminated()

    def test_skip(self):
        buf = Buffer(b"\x00" * 11 + b"\x07")
        buf.skip(11)
        assert buf.read_byte() == 7


class TestPacketWriter:
    def test_chained_writes(self):
        data = (
            PacketWriter()
            .write_varint(0)
            .write_string("localhost")
            .write_uint16(25565)
            .getvalue()
        )
        assert data == b"\x00\x09localhost\x63\xdd"

    def test_framed(self):
        assert PacketWriter().write_varint(0).framed() == b"\x01\x00"

    def test_write_read_mirror(self):
        data = (
            PacketWriter()
            .write_int64(-42)
            .write_uint32(0xDEADBEEF, "little")
            .write_null_terminated(b"name")
            .getvalue()
        )
        buf = Buffer(data)
        assert buf.read_int64() == -42
        assert buf.read_uint32("little") == 0xDEADBEEF
        assert buf.read_null_terminated() == b"name"


class TestParseDecimal:
    def test_plain_number(self):
        assert parse_decimal("20", "max players") == 20

    def test_bytes_and_negative(self):
        assert parse_decimal(b"-9513307", "token") == -9513307

    @pytest.mark.parametrize("value", ["", "12a", " 5", "1.0", "+3"])
    def test_rejects(self, value):
        with pytest.raises(MalformedFieldError, match="players"):
            parse_decimal(value, "players")
