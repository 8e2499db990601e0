"""
Versioned Formats
Wire shapes for everything the key store serializes.

Each kind (envelope, bundle, encrypted payload) is a single-field tagged
union: {"v0": {...}}. Only v0 exists today. Decoding looks the tag up in
the kind's version registry; a payload with no known tag is rejected,
never defaulted. Adding v1 means a new dataclass plus a registry entry.

  Envelope:  what save() emits: revision + encrypted bundle
  Bundle:    the decrypted store state: uid + key list
  Encrypted: what encrypt() emits: key id + encrypted user payload
"""

from dataclasses import dataclass, field
from typing import ClassVar

from keystash.aead import KEY_SIZE, NONCE_SIZE
from keystash.canonical import MAX_UINT32
from keystash.codec import pack, unpack
from keystash.errors import UnrecognizedFormatError


def _field(data: dict, name: str, kind: str):
    if name not in data:
        raise UnrecognizedFormatError(f"Malformed {kind} payload: missing {name!r}")
    return data[name]


def _bytes_field(data: dict, name: str, kind: str, size: int | None = None) -> bytes:
    value = _field(data, name, kind)
    if not isinstance(value, bytes):
        raise UnrecognizedFormatError(f"Malformed {kind} payload: {name!r} is not bytes")
    if size is not None and len(value) != size:
        raise UnrecognizedFormatError(
            f"Malformed {kind} payload: {name!r} must be {size} bytes, got {len(value)}"
        )
    return value


def _str_field(data: dict, name: str, kind: str) -> str:
    value = _field(data, name, kind)
    if not isinstance(value, str):
        raise UnrecognizedFormatError(f"Malformed {kind} payload: {name!r} is not a string")
    return value


@dataclass(frozen=True)
class KeyRecord:
    """One data encryption key. Immutable; identity is the id."""
    id: str
    secret: bytes = field(repr=False)

    def to_dict(self) -> dict:
        return {"id": self.id, "secret": self.secret}

    @classmethod
    def from_dict(cls, data, kind: str = "key") -> "KeyRecord":
        if not isinstance(data, dict):
            raise UnrecognizedFormatError(f"Malformed {kind} payload: key is not a mapping")
        return cls(
            id=_str_field(data, "id", kind),
            secret=_bytes_field(data, "secret", kind, size=KEY_SIZE),
        )


@dataclass(frozen=True)
class EnvelopeV0:
    TAG: ClassVar[str] = "v0"

    revision: int
    nonce: bytes
    ciphertext: bytes

    def to_dict(self) -> dict:
        return {
            "revision": self.revision,
            "nonce": self.nonce,
            "ciphertext": self.ciphertext,
        }

    @classmethod
    def from_dict(cls, data: dict, kind: str = "envelope") -> "EnvelopeV0":
        revision = _field(data, "revision", kind)
        if isinstance(revision, bool) or not isinstance(revision, int) or not 0 <= revision <= MAX_UINT32:
            raise UnrecognizedFormatError(
                f"Malformed {kind} payload: 'revision' is not a 32-bit unsigned integer"
            )
        return cls(
            revision=revision,
            nonce=_bytes_field(data, "nonce", kind, size=NONCE_SIZE),
            ciphertext=_bytes_field(data, "ciphertext", kind),
        )


@dataclass(frozen=True)
class BundleV0:
    TAG: ClassVar[str] = "v0"

    uid: str
    keys: tuple[KeyRecord, ...]

    def to_dict(self) -> dict:
        return {"uid": self.uid, "keys": [key.to_dict() for key in self.keys]}

    @classmethod
    def from_dict(cls, data: dict, kind: str = "bundle") -> "BundleV0":
        keys = _field(data, "keys", kind)
        if not isinstance(keys, list) or not keys:
            raise UnrecognizedFormatError(f"Malformed {kind} payload: 'keys' must be a non-empty list")
        records = tuple(KeyRecord.from_dict(key, kind) for key in keys)
        if len({record.id for record in records}) != len(records):
            raise UnrecognizedFormatError(f"Malformed {kind} payload: duplicate key ids")
        return cls(uid=_str_field(data, "uid", kind), keys=records)


@dataclass(frozen=True)
class EncryptedV0:
    TAG: ClassVar[str] = "v0"

    key_id: str
    nonce: bytes
    ciphertext: bytes

    def to_dict(self) -> dict:
        return {
            "keyId": self.key_id,
            "nonce": self.nonce,
            "ciphertext": self.ciphertext,
        }

    @classmethod
    def from_dict(cls, data: dict, kind: str = "encrypted") -> "EncryptedV0":
        return cls(
            key_id=_str_field(data, "keyId", kind),
            nonce=_bytes_field(data, "nonce", kind, size=NONCE_SIZE),
            ciphertext=_bytes_field(data, "ciphertext", kind),
        )


# One alias per kind; a new version joins with `|`
Envelope = EnvelopeV0
Bundle = BundleV0
Encrypted = EncryptedV0

ENVELOPE_VERSIONS = {EnvelopeV0.TAG: EnvelopeV0}
BUNDLE_VERSIONS = {BundleV0.TAG: BundleV0}
ENCRYPTED_VERSIONS = {EncryptedV0.TAG: EncryptedV0}


def _encode_tagged(variant) -> bytes:
    return pack({variant.TAG: variant.to_dict()})


def _decode_tagged(payload: bytes, versions: dict, kind: str):
    obj = unpack(payload)
    if isinstance(obj, dict):
        for tag, variant in versions.items():
            body = obj.get(tag)
            if isinstance(body, dict):
                return variant.from_dict(body, kind)
    raise UnrecognizedFormatError(f"Unrecognised {kind} payload")


def encode_envelope(envelope: Envelope) -> bytes:
    return _encode_tagged(envelope)


def decode_envelope(payload: bytes) -> Envelope:
    return _decode_tagged(payload, ENVELOPE_VERSIONS, "envelope")


def encode_bundle(bundle: Bundle) -> bytes:
    return _encode_tagged(bundle)


def decode_bundle(payload: bytes) -> Bundle:
    return _decode_tagged(payload, BUNDLE_VERSIONS, "bundle")


def encode_encrypted(encrypted: Encrypted) -> bytes:
    return _encode_tagged(encrypted)


def decode_encrypted(payload: bytes) -> Encrypted:
    return _decode_tagged(payload, ENCRYPTED_VERSIONS, "encrypted")
