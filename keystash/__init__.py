"""
Keystash: Rotatable Encrypted Key Store
Password-protected, versioned set of data encryption keys.

Keystash keeps a list of AES-256-GCM keys:
1. Encrypt: always with the newest key; the key id travels with the data
2. Rotate: add a new key; old ciphertexts keep decrypting
3. Save / Load: the whole store as one encrypted blob, bound to a
   password and a context
4. Merge: reunite two copies that rotated independently

Usage:
    from keystash import KeyStore
    store = KeyStore.create()
    token = store.encrypt({"note": "hello"})
    blob = store.save("my-passphrase", ["notes-app"])
    restored = KeyStore.load(blob, "my-passphrase", ["notes-app"])
    restored.decrypt(token)
"""

import logging

from keystash.store import KeyStore
from keystash.formats import KeyRecord
from keystash.canonical import encode as encode_canonical, decode as decode_canonical
from keystash.derivation import derive_master_key, derive_chain
from keystash.errors import (
    KeystashError,
    EncodingError,
    UnrecognizedFormatError,
    AuthenticationError,
    UnknownKeyError,
    IdentityMismatchError,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"
__all__ = [
    "KeyStore",
    "KeyRecord",
    "encode_canonical",
    "decode_canonical",
    "derive_master_key",
    "derive_chain",
    "KeystashError",
    "EncodingError",
    "UnrecognizedFormatError",
    "AuthenticationError",
    "UnknownKeyError",
    "IdentityMismatchError",
]
