"""
Authenticated Codec - AES-256-GCM record encryption

Serializes a JSON-compatible record to canonical bytes and seals it with
AES-GCM under a fresh random nonce. Decryption fails loudly on a wrong key
or any tampering; it never returns garbage plaintext.
"""

import json
import os
from typing import Any
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from mindscribe.crypto.keys import KeyHandle
from mindscribe.models.records import EncryptedRecord


NONCE_LENGTH = 12  # 96-bit nonce for GCM


class DecryptionError(Exception):
    """Record could not be authenticated or decoded"""


def canonical_bytes(record: Any) -> bytes:
    """Canonical JSON encoding (sorted keys, no whitespace)"""
    return json.dumps(
        record,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


def encrypt(record: Any, key: KeyHandle) -> EncryptedRecord:
    """
    Encrypt a record

    Raises:
        TypeError: record is not JSON serializable
    """
    plaintext = canonical_bytes(record)
    # A new nonce per call; nonces are never cached or reused
    nonce = os.urandom(NONCE_LENGTH)
    ciphertext = AESGCM(key.key).encrypt(nonce, plaintext, None)
    return EncryptedRecord(nonce=nonce, ciphertext=ciphertext)


def decrypt(record: EncryptedRecord, key: KeyHandle) -> Any:
    """
    Decrypt a record produced by encrypt()

    Raises:
        DecryptionError: wrong key, tampered data or malformed record
    """
    if len(record.nonce) != NONCE_LENGTH:
        raise DecryptionError("Malformed record: bad nonce length")

    try:
        plaintext = AESGCM(key.key).decrypt(record.nonce, record.ciphertext, None)
    except InvalidTag as e:
        raise DecryptionError(
            "Authentication failed: record was tampered with or key is wrong"
        ) from e

    try:
        return json.loads(plaintext.decode("utf-8"))
    except ValueError as e:
        raise DecryptionError("Decrypted payload is not valid JSON") from e
