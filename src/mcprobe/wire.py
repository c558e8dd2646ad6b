"""Primitive wire types shared by every protocol.

Java protocols use big-endian numerics, VarInt framing and VarInt
length-prefixed UTF-8 strings. Query, Bedrock and RCON mix in little-endian
fields and NUL-terminated strings.

Every decoder that takes a ``reader`` only needs ``reader.read(n)`` returning
exactly ``n`` bytes (or raising :class:`TruncatedInputError`), so the same
code runs over an in-memory :class:`Buffer` and over a live TCP stream.
"""

from __future__ import annotations

import re
import struct
from typing import Literal, Protocol

from mcprobe.errors import MalformedFieldError, TruncatedInputError, VarIntTooBigError

ByteOrder = Literal["big", "little"]

VARINT_MAX_BYTES = 5
VARLONG_MAX_BYTES = 10

_SEGMENT_BITS = 0x7F
_CONTINUE_BIT = 0x80
_ORDER_PREFIX: dict[str, str] = {"big": ">", "little": "<"}


class Reader(Protocol):
    """Anything that can hand back exactly ``size`` bytes."""

    def read(self, size: int) -> bytes: ...


def _read_var(reader: Reader, max_bytes: int, bits: int) -> tuple[int, int]:
    result = 0
    for consumed in range(max_bytes):
        byte = reader.read(1)[0]
        result |= (byte & _SEGMENT_BITS) << (7 * consumed)
        if not byte & _CONTINUE_BIT:
            break
    else:
        msg = f"Variable-length integer exceeds {max_bytes} bytes"
        raise VarIntTooBigError(msg)

    result &= (1 << bits) - 1
    if result >= 1 << (bits - 1):
        result -= 1 << bits
    return result, consumed + 1


def _encode_var(value: int, bits: int) -> bytes:
    low, high = -(1 << (bits - 1)), (1 << (bits - 1)) - 1
    if not low <= value <= high:
        msg = f"{value} does not fit in a {bits}-bit variable-length integer"
        raise ValueError(msg)

    value &= (1 << bits) - 1
    out = bytearray()
    while value & ~_SEGMENT_BITS:
        out.append((value & _SEGMENT_BITS) | _CONTINUE_BIT)
        value >>= 7
    out.append(value)
    return bytes(out)


def read_varint(reader: Reader) -> tuple[int, int]:
    """Read a signed 32-bit VarInt.

    Returns:
        ``(value, bytes_consumed)``.

    Raises:
        VarIntTooBigError: If the value keeps going past 5 bytes.
        TruncatedInputError: If the input ends mid-value.
    """
    return _read_var(reader, VARINT_MAX_BYTES, 32)


def read_varlong(reader: Reader) -> tuple[int, int]:
    """Read a signed 64-bit VarLong. Same contract as :func:`read_varint`."""
    return _read_var(reader, VARLONG_MAX_BYTES, 64)


def encode_varint(value: int) -> bytes:
    """Encode a signed 32-bit integer as a VarInt.

    Negative numbers use the two's-complement bit pattern, so ``-1`` is
    always five bytes.
    """
    return _encode_var(value, 32)


def encode_varlong(value: int) -> bytes:
    """Encode a signed 64-bit integer as a VarLong."""
    return _encode_var(value, 64)


def read_string(reader: Reader) -> str:
    """Read a VarInt byte-length followed by that many UTF-8 bytes."""
    length, _ = read_varint(reader)
    if length < 0:
        msg = f"Negative string length: {length}"
        raise MalformedFieldError(msg)
    data = reader.read(length)
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        msg = f"String is not valid UTF-8: {data[:32]!r}"
        raise MalformedFieldError(msg) from e


def encode_string(value: str) -> bytes:
    """Encode a string with a VarInt byte-length prefix."""
    data = value.encode("utf-8")
    return encode_varint(len(data)) + data


def frame(payload: bytes) -> bytes:
    """Wrap a Java packet payload as ``VarInt(len) || payload``."""
    return encode_varint(len(payload)) + payload


class Buffer:
    """An in-memory reader over a received packet or datagram."""

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    def __len__(self) -> int:
        return len(self._data)

    @property
    def remaining(self) -> int:
        """Number of unread bytes."""
        return len(self._data) - self._pos

    def read(self, size: int) -> bytes:
        """Read exactly ``size`` bytes, never zero-filling a short read."""
        if size < 0:
            msg = f"Cannot read a negative number of bytes: {size}"
            raise ValueError(msg)
        if size > self.remaining:
            msg = f"Expected {size} bytes, only {self.remaining} left"
            raise TruncatedInputError(msg)
        chunk = self._data[self._pos : self._pos + size]
        self._pos += size
        return chunk

    def read_rest(self) -> bytes:
        """Read everything that is left."""
        return self.read(self.remaining)

    def skip(self, size: int) -> None:
        self.read(size)

    def read_byte(self) -> int:
        return self.read(1)[0]

    def read_bool(self) -> bool:
        value = self.read_byte()
        if value not in (0, 1):
            msg = f"Boolean byte must be 0 or 1, got {value}"
            raise MalformedFieldError(msg)
        return value == 1

    def _read_int(self, size: int, byteorder: ByteOrder, *, signed: bool) -> int:
        return int.from_bytes(self.read(size), byteorder, signed=signed)

    def read_int16(self, byteorder: ByteOrder = "big") -> int:
        return self._read_int(2, byteorder, signed=True)

    def read_uint16(self, byteorder: ByteOrder = "big") -> int:
        return self._read_int(2, byteorder, signed=False)

    def read_int32(self, byteorder: ByteOrder = "big") -> int:
        return self._read_int(4, byteorder, signed=True)

    def read_uint32(self, byteorder: ByteOrder = "big") -> int:
        return self._read_int(4, byteorder, signed=False)

    def read_int64(self, byteorder: ByteOrder = "big") -> int:
        return self._read_int(8, byteorder, signed=True)

    def read_uint64(self, byteorder: ByteOrder = "big") -> int:
        return self._read_int(8, byteorder, signed=False)

    def read_float32(self, byteorder: ByteOrder = "big") -> float:
        (value,) = struct.unpack(f"{_ORDER_PREFIX[byteorder]}f", self.read(4))
        return value

    def read_float64(self, byteorder: ByteOrder = "big") -> float:
        (value,) = struct.unpack(f"{_ORDER_PREFIX[byteorder]}d", self.read(8))
        return value

    def read_varint(self) -> int:
        value, _ = read_varint(self)
        return value

    def read_varlong(self) -> int:
        value, _ = read_varlong(self)
        return value

    def read_string(self) -> str:
        return read_string(self)

    def read_null_terminated(self) -> bytes:
        """Read bytes up to a ``0x00`` sentinel, which is consumed but not returned."""
        end = self._data.find(b"\x00", self._pos)
        if end == -1:
            msg = "Missing NUL terminator"
            raise TruncatedInputError(msg)
        chunk = self._data[self._pos : end]
        self._pos = end + 1
        return chunk


class PacketWriter:
    """Accumulates primitive values into a packet body."""

    def __init__(self) -> None:
        self._buf = bytearray()

    def __len__(self) -> int:
        return len(self._buf)

    def getvalue(self) -> bytes:
        return bytes(self._buf)

    def framed(self) -> bytes:
        """Return the body prefixed with its VarInt length."""
        return frame(bytes(self._buf))

    def write(self, data: bytes) -> PacketWriter:
        self._buf += data
        return self

    def write_byte(self, value: int) -> PacketWriter:
        self._buf.append(value & 0xFF)
        return self

    def write_bool(self, value: bool) -> PacketWriter:  # noqa: FBT001
        return self.write_byte(1 if value else 0)

    def _write_int(
        self, value: int, size: int, byteorder: ByteOrder, *, signed: bool
    ) -> PacketWriter:
        try:
            self._buf += value.to_bytes(size, byteorder, signed=signed)
        except OverflowError as e:
            msg = f"{value} does not fit in {size * 8} bits"
            raise ValueError(msg) from e
        return self

    def write_int16(self, value: int, byteorder: ByteOrder = "big") -> PacketWriter:
        return self._write_int(value, 2, byteorder, signed=True)

    def write_uint16(self, value: int, byteorder: ByteOrder = "big") -> PacketWriter:
        return self._write_int(value, 2, byteorder, signed=False)

    def write_int32(self, value: int, byteorder: ByteOrder = "big") -> PacketWriter:
        return self._write_int(value, 4, byteorder, signed=True)

    def write_uint32(self, value: int, byteorder: ByteOrder = "big") -> PacketWriter:
        return self._write_int(value, 4, byteorder, signed=False)

    def write_int64(self, value: int, byteorder: ByteOrder = "big") -> PacketWriter:
        return self._write_int(value, 8, byteorder, signed=True)

    def write_uint64(self, value: int, byteorder: ByteOrder = "big") -> PacketWriter:
        return self._write_int(value, 8, byteorder, signed=False)

    def write_float32(self, value: float, byteorder: ByteOrder = "big") -> PacketWriter:
        self._buf += struct.pack(f"{_ORDER_PREFIX[byteorder]}f", value)
        return self

    def write_float64(self, value: float, byteorder: ByteOrder = "big") -> PacketWriter:
        self._buf += struct.pack(f"{_ORDER_PREFIX[byteorder]}d", value)
        return self

    def write_varint(self, value: int) -> PacketWriter:
        self._buf += encode_varint(value)
        return self

    def write_varlong(self, value: int) -> PacketWriter:
        self._buf += encode_varlong(value)
        return self

    def write_string(self, value: str) -> PacketWriter:
        self._buf += encode_string(value)
        return self

    def write_null_terminated(self, value: bytes) -> PacketWriter:
        self._buf += value + b"\x00"
        return self


_DECIMAL_PATTERN = re.compile(r"-?[0-9]+")


def parse_decimal(value: str | bytes, name: str) -> int:
    """Parse a base-10 integer field sent as text.

    Raises:
        MalformedFieldError: If ``value`` is not a plain decimal number.
    """
    if isinstance(value, bytes):
        value = value.decode("ascii", errors="replace")
    if not _DECIMAL_PATTERN.fullmatch(value):
        msg = f"Expected a number for {name}, got {value!r}"
        raise MalformedFieldError(msg)
    return int(value)
