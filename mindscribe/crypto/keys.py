"""
Key Derivation - password-based key management

Turns a user secret plus a stored random salt into a reusable AES-256 key
handle using PBKDF2-HMAC-SHA256. The salt is not secret and is persisted in
plaintext; the derived key only ever lives in memory.
"""

import os
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC


SALT_LENGTH = 16  # 128-bit salt
KEY_LENGTH = 32  # 256-bit derived key
PBKDF2_ITERATIONS = 100_000

# Appended to the salt when hashing passwords so the stored hash never
# equals the encryption key derived from the same password.
_PASSWORD_HASH_CONTEXT = b"mindscribe:password-hash"


class KeyHandle:
    """
    Opaque derived key

    Held in memory for the duration of an authenticated session. It refuses
    to be pickled and never shows its bytes in reprs.
    """

    __slots__ = ("_key",)

    def __init__(self, key: bytes):
        if len(key) != KEY_LENGTH:
            raise ValueError(f"Key must be {KEY_LENGTH} bytes")
        self._key = key

    @property
    def key(self) -> bytes:
        return self._key

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KeyHandle):
            return NotImplemented
        return self._key == other._key

    def __hash__(self) -> int:
        return hash(self._key)

    def __reduce__(self):
        raise TypeError("KeyHandle cannot be serialized")

    def __repr__(self) -> str:
        return "KeyHandle(<redacted>)"


def generate_salt() -> bytes:
    """Generate a fresh random salt for a new user"""
    return os.urandom(SALT_LENGTH)


def _validate(secret: str, salt: bytes):
    if not secret:
        raise ValueError("Secret must not be empty")
    if not isinstance(salt, (bytes, bytearray)) or len(salt) != SALT_LENGTH:
        raise ValueError(f"Salt must be {SALT_LENGTH} bytes")


def _pbkdf2(secret: str, salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(secret.encode("utf-8"))


def derive_key(secret: str, salt: bytes) -> KeyHandle:
    """
    Derive an AES-256 key handle from a secret and salt

    Deterministic: the same (secret, salt) pair always yields the same key.

    Raises:
        ValueError: empty secret or salt of the wrong length
    """
    _validate(secret, salt)
    return KeyHandle(_pbkdf2(secret, bytes(salt)))


def hash_password(password: str, salt: bytes) -> str:
    """Hex PBKDF2 hash used to verify a login password"""
    _validate(password, salt)
    return _pbkdf2(password, bytes(salt) + _PASSWORD_HASH_CONTEXT).hex()
