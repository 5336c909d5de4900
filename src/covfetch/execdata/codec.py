"""Primitive encodings used by the execution data wire format.

All multi-byte integers are big-endian. Strings use the length-prefixed
"modified UTF-8" of ``java.io.DataOutput.writeUTF``: a 16-bit byte count, NUL
encoded as ``C0 80`` and supplementary characters encoded as surrogate pairs.
Boolean arrays are a var-int length followed by the flags packed eight per
byte, least significant bit first.
"""

from __future__ import annotations

import struct
from typing import TYPE_CHECKING

from covfetch.errors import ExecDataFormatError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from typing import BinaryIO

_U16 = struct.Struct(">H")
_I64 = struct.Struct(">q")
_U64 = struct.Struct(">Q")

MAX_UTF_LENGTH = 0xFFFF

# largest single read request; block lengths come from untrusted input
READ_CHUNK_SIZE = 64 * 1024


class TruncatedStreamError(ExecDataFormatError):
    """The stream ended in the middle of a block."""


# --------------------------------------------------------------------------- #
# Output                                                                      #
# --------------------------------------------------------------------------- #


def encode_bool(value: bool) -> bytes:  # noqa: FBT001
    return b"\x01" if value else b"\x00"


def encode_u16(value: int) -> bytes:
    return _U16.pack(value)


def encode_u64(value: int) -> bytes:
    """Encode an unsigned 64-bit id as the eight bytes of a Java ``long``."""
    return _U64.pack(value & 0xFFFFFFFFFFFFFFFF)


def encode_i64(value: int) -> bytes:
    return _I64.pack(value)


def encode_varint(value: int) -> bytes:
    if value < 0:
        msg = f"var-int must be non-negative, got {value}"
        raise ValueError(msg)
    out = bytearray()
    while value > 0x7F:
        out.append(0x80 | (value & 0x7F))
        value >>= 7
    out.append(value)
    return bytes(out)


def encode_utf(text: str) -> bytes:
    body = bytearray()
    for unit in _utf16_units(text):
        if 0x0001 <= unit <= 0x007F:
            body.append(unit)
        elif unit <= 0x07FF:
            body += bytes((0xC0 | (unit >> 6), 0x80 | (unit & 0x3F)))
        else:
            body += bytes((0xE0 | (unit >> 12), 0x80 | ((unit >> 6) & 0x3F), 0x80 | (unit & 0x3F)))
    if len(body) > MAX_UTF_LENGTH:
        msg = f"encoded string too long: {len(body)} bytes"
        raise ValueError(msg)
    return encode_u16(len(body)) + bytes(body)


def encode_bool_array(values: Sequence[bool]) -> bytes:
    out = bytearray(encode_varint(len(values)))
    buffer = 0
    filled = 0
    for flag in values:
        if flag:
            buffer |= 1 << filled
        filled += 1
        if filled == 8:  # noqa: PLR2004
            out.append(buffer)
            buffer = 0
            filled = 0
    if filled:
        out.append(buffer)
    return bytes(out)


def _utf16_units(text: str) -> list[int]:
    data = text.encode("utf-16-be", errors="surrogatepass")
    return [int.from_bytes(data[i : i + 2], "big") for i in range(0, len(data), 2)]


# --------------------------------------------------------------------------- #
# Input                                                                       #
# --------------------------------------------------------------------------- #


def read_exact(stream: BinaryIO, size: int) -> bytes:
    """Read exactly *size* bytes or raise :class:`TruncatedStreamError`."""
    chunks: list[bytes] = []
    remaining = size
    while remaining > 0:
        chunk = stream.read(min(remaining, READ_CHUNK_SIZE))
        if not chunk:
            msg = f"unexpected end of stream: wanted {size} bytes, got {size - remaining}"
            raise TruncatedStreamError(msg)
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def read_byte(stream: BinaryIO) -> int:
    return read_exact(stream, 1)[0]


def read_bool(stream: BinaryIO) -> bool:
    return read_byte(stream) != 0


def read_u16(stream: BinaryIO) -> int:
    return _U16.unpack(read_exact(stream, 2))[0]


def read_u64(stream: BinaryIO) -> int:
    return _U64.unpack(read_exact(stream, 8))[0]


def read_i64(stream: BinaryIO) -> int:
    return _I64.unpack(read_exact(stream, 8))[0]


def read_varint(stream: BinaryIO) -> int:
    value = 0
    shift = 0
    while True:
        byte = read_byte(stream)
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return value
        shift += 7
        if shift > 35:  # noqa: PLR2004
            msg = "var-int longer than five bytes"
            raise ExecDataFormatError(msg)


def read_utf(stream: BinaryIO) -> str:
    length = read_u16(stream)
    return decode_modified_utf8(read_exact(stream, length))


def read_bool_array(stream: BinaryIO) -> tuple[bool, ...]:
    length = read_varint(stream)
    packed = read_exact(stream, (length + 7) // 8)
    return tuple(bool(packed[i >> 3] & (1 << (i & 7))) for i in range(length))


def decode_modified_utf8(data: bytes) -> str:
    units: list[int] = []
    i = 0
    size = len(data)
    while i < size:
        a = data[i]
        if a < 0x80:  # noqa: PLR2004
            units.append(a)
            i += 1
        elif a & 0xE0 == 0xC0 and i + 1 < size and data[i + 1] & 0xC0 == 0x80:
            units.append(((a & 0x1F) << 6) | (data[i + 1] & 0x3F))
            i += 2
        elif (
            a & 0xF0 == 0xE0
            and i + 2 < size
            and data[i + 1] & 0xC0 == 0x80
            and data[i + 2] & 0xC0 == 0x80
        ):
            units.append(((a & 0x0F) << 12) | ((data[i + 1] & 0x3F) << 6) | (data[i + 2] & 0x3F))
            i += 3
        else:
            msg = f"malformed modified UTF-8 at byte {i}"
            raise ExecDataFormatError(msg)
    raw = b"".join(unit.to_bytes(2, "big") for unit in units)
    return raw.decode("utf-16-be", errors="surrogatepass")


__all__ = [
    "MAX_UTF_LENGTH",
    "READ_CHUNK_SIZE",
    "TruncatedStreamError",
    "decode_modified_utf8",
    "encode_bool",
    "encode_bool_array",
    "encode_i64",
    "encode_u16",
    "encode_u64",
    "encode_utf",
    "encode_varint",
    "read_bool",
    "read_bool_array",
    "read_byte",
    "read_exact",
    "read_i64",
    "read_u16",
    "read_u64",
    "read_utf",
    "read_varint",
]
