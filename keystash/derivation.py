"""
Key Derivation

Two steps turn a human secret into the key that protects a saved store:

  Secret + context → master key    (PBKDF2-HMAC-SHA256, context as salt)
  master key       → derived keys  (sequential HKDF-SHA256 chain)

Putting the context into the salt means one password yields unrelated
master keys for different contexts, so several stores can share it.

The chain keeps a running state the length of the master key. Each step
expands the state by HKDF to len(state) + n bytes: the head replaces the
state, the tail is emitted. Outputs are independent of one another and
only the master key ever needs to be retained.
"""

from collections.abc import Sequence

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from keystash.canonical import encode
from keystash.errors import EncodingError


PBKDF2_ITERATIONS = 500_000
MASTER_KEY_SIZE = 32  # 256 bits
BUNDLE_KEY_SIZE = 32

Secret = str | bytes


def derive_master_key(secret: Secret, context: Sequence | None = None) -> bytes:
    """
    Derive the master key from a secret bound to a context.

    Args:
        secret: Password or passphrase (str or bytes).
        context: Optional sequence of canonical values. None uses an empty
            salt; any sequence (including an empty one) is encoded.

    Returns:
        32-byte master key.

    Raises:
        EncodingError: If the secret is not str/bytes, or the context is not
            a list/tuple of canonical values.
    """
    if not isinstance(secret, (str, bytes, bytearray)):
        raise EncodingError(f"Secret must be str or bytes, got {type(secret).__name__}")
    if context is not None and not isinstance(context, (list, tuple)):
        raise EncodingError(f"Context must be a list or tuple, got {type(context).__name__}")

    encoded_secret = encode(secret)
    salt = b"" if context is None else encode(list(context))
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=MASTER_KEY_SIZE,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(encoded_secret)


def _expand(state: bytes, length: int) -> bytes:
    hkdf = HKDF(algorithm=hashes.SHA256(), length=length, salt=None, info=b"")
    return hkdf.derive(state)


def derive_chain(master: bytes, output_lengths: Sequence[int]) -> list[bytes]:
    """
    Expand one secret into several independent keys.

    Args:
        master: The starting secret; its length fixes the state length.
        output_lengths: Requested size of each output, in order.

    Returns:
        One derived key per requested length.
    """
    state = bytes(master)
    state_length = len(state)
    outputs = []

    for length in output_lengths:
        if length < 0:
            raise ValueError(f"Output length must be non-negative, got {length}")
        derived = _expand(state, state_length + length)
        state, output = derived[:state_length], derived[state_length:]
        outputs.append(output)

    return outputs


def derive_bundle_key(secret: Secret, context: Sequence | None = None) -> bytes:
    """The key that encrypts a saved store: first output of the chain."""
    master = derive_master_key(secret, context)
    [bundle_key] = derive_chain(master, [BUNDLE_KEY_SIZE])
    return bundle_key
