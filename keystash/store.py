"""
Key Store
A versioned, rotatable set of data encryption keys protected by a password.

The store holds an ordered list of keys. The newest key encrypts; any key
the store has ever held still decrypts, because keys are only ever added.
Each ciphertext carries the id of the key that produced it.

Persistence:
  secret + context → bundle key (PBKDF2 then HKDF chain)
  bundle {uid, keys} → AES-256-GCM under the bundle key,
                       with canonical([revision]) as associated data
  envelope {revision, nonce, ciphertext} → msgpack bytes

The revision sits outside the encryption but is authenticated, so the
body of one saved envelope cannot be replayed under another's revision.

Two copies of a store that diverged (loaded from the same save and rotated
independently) can be merged: keys are immutable, so the merged store is
the union of both key sets and decrypts everything either copy could.

A store is single-writer: rotate(), encrypt() and save() are not
synchronized, the owner must serialize calls on one instance.
"""

import logging
import uuid
from collections.abc import Iterable, Sequence

from keystash.aead import decrypt_data, encrypt_data, generate_key
from keystash.canonical import encode
from keystash.codec import pack, unpack
from keystash.derivation import Secret, derive_bundle_key
from keystash.errors import AuthenticationError, IdentityMismatchError, UnknownKeyError
from keystash.formats import (
    BundleV0,
    EncryptedV0,
    EnvelopeV0,
    KeyRecord,
    decode_bundle,
    decode_encrypted,
    decode_envelope,
    encode_bundle,
    encode_encrypted,
    encode_envelope,
)

logger = logging.getLogger(__name__)


def _revision_aad(revision: int) -> bytes:
    return encode([revision])


def _payload_aad(associated_data) -> bytes | None:
    return None if associated_data is None else pack(associated_data)


def _new_key() -> KeyRecord:
    return KeyRecord(id=str(uuid.uuid4()), secret=generate_key())


class KeyStore:
    """
    Protected set of data encryption keys.

    Use create() for a new store and load() to restore a saved one; the
    constructor is for rebuilding a store from known parts.

    Args:
        uid: Store identity, fixed for the store's lifetime.
        revision: Logical clock, advanced by every save().
        keys: Key records, oldest first. Ids must be unique and there must
            be at least one.
    """

    def __init__(self, uid: str, revision: int = 0, keys: Iterable[KeyRecord] = ()):
        self.uid = uid
        self.revision = revision
        # id -> record, insertion order is age order; last entry is active
        self._keys: dict[str, KeyRecord] = {}
        for key in keys:
            self._add(key)
        if not self._keys:
            raise ValueError("A key store needs at least one key")

    def _add(self, key: KeyRecord):
        if key.id in self._keys:
            raise ValueError(f"Duplicate key id {key.id!r}")
        self._keys[key.id] = key

    # --- construction -------------------------------------------------

    @classmethod
    def create(cls) -> "KeyStore":
        """Initialize a store for a new user with a single key."""
        store = cls(str(uuid.uuid4()), revision=0, keys=[_new_key()])
        logger.debug("Created key store %s", store.uid)
        return store

    @classmethod
    def load(cls, payload: bytes, secret: Secret, context: Sequence | None = None) -> "KeyStore":
        """
        Restore a store from a previous save().

        Args:
            payload: Bytes returned by save().
            secret: The secret the store was saved with.
            context: The context the store was saved with.

        Raises:
            UnrecognizedFormatError: Unknown envelope or bundle version.
            AuthenticationError: Wrong secret, wrong context, or the payload
                was modified. The cause is deliberately not reported.
        """
        envelope = decode_envelope(payload)
        if not isinstance(envelope, EnvelopeV0):
            raise TypeError(f"Unhandled envelope version {type(envelope).__name__}")

        bundle_key = derive_bundle_key(secret, context)
        try:
            plaintext = decrypt_data(
                envelope.nonce,
                envelope.ciphertext,
                bundle_key,
                _revision_aad(envelope.revision),
            )
        except AuthenticationError:
            logger.warning("Rejected saved store at revision %d: authentication failed", envelope.revision)
            raise

        bundle = decode_bundle(plaintext)
        if not isinstance(bundle, BundleV0):
            raise TypeError(f"Unhandled bundle version {type(bundle).__name__}")

        store = cls(bundle.uid, revision=envelope.revision, keys=bundle.keys)
        logger.debug("Loaded key store %s at revision %d (%d keys)", store.uid, store.revision, len(store))
        return store

    @staticmethod
    def merge(first: "KeyStore", second: "KeyStore") -> "KeyStore":
        """
        Merge two diverged copies of the same store.

        The result holds every key from both, first's keys first. If both
        hold a record with the same id, first's record is kept. The merged
        revision is one past the higher of the two.

        Raises:
            IdentityMismatchError: The stores have different uids.
        """
        if first.uid != second.uid:
            raise IdentityMismatchError(first.uid, second.uid)

        keys = dict(first._keys)
        for key in second._keys.values():
            keys.setdefault(key.id, key)
        merged = KeyStore(
            first.uid,
            revision=max(first.revision, second.revision) + 1,
            keys=keys.values(),
        )

        logger.debug(
            "Merged key store %s: %d + %d keys -> %d, revision %d",
            merged.uid, len(first), len(second), len(merged), merged.revision,
        )
        return merged

    # --- keys ---------------------------------------------------------

    def rotate(self) -> KeyRecord:
        """Add a fresh key; it becomes the active key for encrypt()."""
        key = _new_key()
        self._add(key)
        logger.debug("Rotated key store %s to key %s", self.uid, key.id)
        return key

    @property
    def latest_key(self) -> KeyRecord:
        """The active key, i.e. the most recently added one."""
        return next(reversed(self._keys.values()))

    def get_key(self, key_id: str) -> KeyRecord:
        """Look up a key by id. Raises UnknownKeyError if absent."""
        try:
            return self._keys[key_id]
        except KeyError:
            raise UnknownKeyError(key_id) from None

    @property
    def key_ids(self) -> list[str]:
        """All key ids, oldest first."""
        return list(self._keys)

    def __len__(self):
        return len(self._keys)

    def __contains__(self, key_id):
        return key_id in self._keys

    # --- payloads -----------------------------------------------------

    def encrypt(self, data, associated_data=None) -> bytes:
        """
        Encrypt any msgpack-serializable value with the active key.

        Args:
            data: The value to protect.
            associated_data: Optional serializable value that must be given
                again, unchanged, to decrypt().

        Returns:
            Self-describing ciphertext naming the key that produced it.
        """
        plaintext = pack(data)
        key = self.latest_key
        nonce, ciphertext = encrypt_data(plaintext, key.secret, _payload_aad(associated_data))
        return encode_encrypted(EncryptedV0(key_id=key.id, nonce=nonce, ciphertext=ciphertext))

    def decrypt(self, payload: bytes, associated_data=None):
        """
        Decrypt a value produced by encrypt() under any key this store holds.

        Raises:
            UnrecognizedFormatError: Not an encrypt() payload, or unknown version.
            UnknownKeyError: The key id is not in this store (e.g. it was
                added by a diverged copy that has not been merged yet).
            AuthenticationError: Wrong associated data or tampered payload.
        """
        encrypted = decode_encrypted(payload)
        if not isinstance(encrypted, EncryptedV0):
            raise TypeError(f"Unhandled encrypted version {type(encrypted).__name__}")

        try:
            key = self.get_key(encrypted.key_id)
        except UnknownKeyError:
            logger.warning("Key store %s has no key %s", self.uid, encrypted.key_id)
            raise

        plaintext = decrypt_data(
            encrypted.nonce,
            encrypted.ciphertext,
            key.secret,
            _payload_aad(associated_data),
        )
        return unpack(plaintext)

    # --- persistence --------------------------------------------------

    def save(self, secret: Secret, context: Sequence | None = None) -> bytes:
        """
        Export the whole store, encrypted under a key derived from secret
        and context. Advances the revision.

        Args:
            secret: Password or passphrase (str or bytes).
            context: Optional list of canonical values binding the save to
                a purpose; the same list must be given to load().

        Returns:
            Opaque envelope bytes for load().
        """
        bundle_key = derive_bundle_key(secret, context)
        revision = self.revision + 1

        bundle = BundleV0(uid=self.uid, keys=tuple(self._keys.values()))
        nonce, ciphertext = encrypt_data(encode_bundle(bundle), bundle_key, _revision_aad(revision))
        payload = encode_envelope(EnvelopeV0(revision=revision, nonce=nonce, ciphertext=ciphertext))

        self.revision = revision
        logger.debug("Saved key store %s at revision %d (%d keys)", self.uid, revision, len(self))
        return payload

    def stats(self) -> dict:
        """Summary of the store. Contains no key material."""
        return {
            "uid": self.uid,
            "revision": self.revision,
            "total_keys": len(self._keys),
            "active_key_id": self.latest_key.id,
        }

    def __repr__(self):
        return f"KeyStore(uid={self.uid!r}, revision={self.revision}, keys={len(self._keys)})"
