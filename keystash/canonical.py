"""
Canonical Encoding
Deterministic, injective byte encoding of a small closed value universe.

Used only to build associated data and password-hashing inputs, never for
storage. Every value is one tag byte followed by a type-specific payload:

    None        0x00
    bool        0x01  1 byte (0x01 / 0x00)
    uint32      0x02  4 bytes little-endian
    bytes       0x10  4-byte little-endian length, raw bytes
    str         0x11  4-byte little-endian length, UTF-8 bytes
    list/tuple  0x20  4-byte little-endian count, each element's encoding
"""

import struct

from keystash.errors import EncodingError


TAG_NULL = 0x00
TAG_BOOL = 0x01
TAG_UINT32 = 0x02
TAG_BYTES = 0x10
TAG_STRING = 0x11
TAG_SEQUENCE = 0x20

MAX_UINT32 = 0xFFFFFFFF
MAX_LENGTH = 0xFFFFFFFF  # lengths and element counts share the uint32 header

_U32 = struct.Struct("<I")


def _length_header(length: int, what: str) -> bytes:
    if length > MAX_LENGTH:
        raise EncodingError(f"{what} length exceeds 32-bit integer limit")
    return _U32.pack(length)


def encode(value) -> bytes:
    """
    Encode a value canonically.

    Args:
        value: None, bool, int in [0, 2**32 - 1], bytes-like, str, or a
            list/tuple of such values.

    Returns:
        The canonical encoding.

    Raises:
        EncodingError: If the value (or any nested value) is outside the
            universe or over a size limit.
    """
    if value is None:
        return bytes([TAG_NULL])

    # bool first: it is an int subclass
    if isinstance(value, bool):
        return bytes([TAG_BOOL, 0x01 if value else 0x00])

    if isinstance(value, int):
        if value < 0 or value > MAX_UINT32:
            raise EncodingError("Input is not a 32-bit unsigned integer")
        return bytes([TAG_UINT32]) + _U32.pack(value)

    if isinstance(value, float):
        raise EncodingError("Input is not a 32-bit unsigned integer")

    if isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        return bytes([TAG_BYTES]) + _length_header(len(raw), "Byte sequence") + raw

    if isinstance(value, str):
        raw = value.encode("utf-8")
        return bytes([TAG_STRING]) + _length_header(len(raw), "String") + raw

    if isinstance(value, (list, tuple)):
        header = bytes([TAG_SEQUENCE]) + _length_header(len(value), "Sequence")
        return header + b"".join(encode(item) for item in value)

    raise EncodingError(f"Unsupported type: {type(value).__name__}")


def decode(data: bytes):
    """Decode a canonical encoding back to its value. Inverse of encode()."""
    data = bytes(data)
    value, offset = _decode_at(data, 0)
    if offset != len(data):
        raise EncodingError(f"Trailing bytes after canonical value at offset {offset}")
    return value


def _take(data: bytes, offset: int, size: int) -> bytes:
    end = offset + size
    if end > len(data):
        raise EncodingError("Truncated canonical encoding")
    return data[offset:end]


def _decode_at(data: bytes, offset: int):
    tag = _take(data, offset, 1)[0]
    offset += 1

    if tag == TAG_NULL:
        return None, offset

    if tag == TAG_BOOL:
        flag = _take(data, offset, 1)[0]
        if flag not in (0x00, 0x01):
            raise EncodingError(f"Invalid boolean byte 0x{flag:02x}")
        return flag == 0x01, offset + 1

    if tag == TAG_UINT32:
        (number,) = _U32.unpack(_take(data, offset, 4))
        return number, offset + 4

    if tag in (TAG_BYTES, TAG_STRING):
        (length,) = _U32.unpack(_take(data, offset, 4))
        offset += 4
        raw = _take(data, offset, length)
        offset += length
        if tag == TAG_BYTES:
            return raw, offset
        try:
            return raw.decode("utf-8"), offset
        except UnicodeDecodeError as e:
            raise EncodingError("Invalid UTF-8 in canonical string") from e

    if tag == TAG_SEQUENCE:
        (count,) = _U32.unpack(_take(data, offset, 4))
        offset += 4
        items = []
        for _ in range(count):
            item, offset = _decode_at(data, offset)
            items.append(item)
        return items, offset

    raise EncodingError(f"Unknown canonical tag 0x{tag:02x}")
