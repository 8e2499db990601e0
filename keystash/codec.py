"""
General-purpose codec for user payloads and wire shapes (MessagePack).

Byte strings stay byte strings (bin type), text stays text, and sequences
come back as lists. Mapping keys may be any msgpack scalar, so integer
keys survive a round trip.
"""

import msgpack

from keystash.errors import EncodingError, UnrecognizedFormatError


def pack(obj) -> bytes:
    """Serialize any msgpack-representable value."""
    try:
        return msgpack.packb(obj, use_bin_type=True)
    except (TypeError, ValueError, OverflowError) as e:
        raise EncodingError(f"Value is not serializable: {e}") from e


def unpack(data: bytes):
    """Deserialize a single msgpack value; trailing data is rejected."""
    try:
        return msgpack.unpackb(bytes(data), raw=False, strict_map_key=False)
    except (msgpack.exceptions.UnpackException, ValueError, TypeError) as e:
        raise UnrecognizedFormatError(f"Payload is not valid msgpack: {e}") from e
