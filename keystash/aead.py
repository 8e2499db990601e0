"""
AEAD Wrapper
AES-256-GCM over raw 32-byte keys. A fresh random 12-byte nonce is drawn
for every encryption; the 16-byte tag is appended to the ciphertext.

The GCM tag is the only integrity check in the system.
"""

import os
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from keystash.errors import AuthenticationError


NONCE_SIZE = 12  # AES-256-GCM standard
KEY_SIZE = 32    # 256 bits


def generate_key() -> bytes:
    """Generate a random Data Encryption Key."""
    return AESGCM.generate_key(bit_length=KEY_SIZE * 8)


def encrypt_data(
    plaintext: bytes, key: bytes, associated_data: bytes | None = None
) -> tuple[bytes, bytes]:
    """Encrypt with AES-256-GCM. Returns (nonce, ciphertext)."""
    nonce = os.urandom(NONCE_SIZE)
    ciphertext = AESGCM(key).encrypt(nonce, plaintext, associated_data)
    return nonce, ciphertext


def decrypt_data(
    nonce: bytes, ciphertext: bytes, key: bytes, associated_data: bytes | None = None
) -> bytes:
    """
    Decrypt AES-256-GCM data.

    Raises:
        AuthenticationError: Wrong key, nonce or associated data, or the
            ciphertext was modified.
    """
    try:
        return AESGCM(key).decrypt(nonce, ciphertext, associated_data)
    except (InvalidTag, ValueError) as e:
        raise AuthenticationError("Decryption failed: invalid key or tampered data") from e
