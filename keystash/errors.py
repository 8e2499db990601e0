"""
Errors
Every failure the key store reports to its caller.

Nothing here is retried internally. Encoding and format errors mean the
input is wrong; authentication errors mean the key material, context or
ciphertext is wrong (deliberately without saying which).
"""


class KeystashError(Exception):
    """Base class for all key store errors."""


class EncodingError(KeystashError):
    """A value is outside the encodable universe or exceeds a size limit."""


class UnrecognizedFormatError(KeystashError):
    """A decoded payload carries no known version tag or is malformed."""


class AuthenticationError(KeystashError):
    """
    AES-GCM tag verification failed.

    Raised for a wrong secret, wrong context, wrong associated data or a
    tampered ciphertext alike, so callers learn nothing about which.
    """


class UnknownKeyError(KeystashError):
    """The ciphertext names a key id this store does not hold."""

    def __init__(self, key_id: str):
        super().__init__(f"No key with id {key_id!r} in this store")
        self.key_id = key_id


class IdentityMismatchError(KeystashError):
    """Two stores with different uids cannot be merged."""

    def __init__(self, first_uid: str, second_uid: str):
        super().__init__(
            f"Cannot merge stores with different uids: {first_uid!r} != {second_uid!r}"
        )
        self.first_uid = first_uid
        self.second_uid = second_uid
