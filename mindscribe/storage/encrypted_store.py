"""
Encrypted Store - one logical collection with optional encryption at rest

Storage Strategy:
- Plain collections write {"kind": "plain"} envelopes
- Encrypted collections write {"kind": "encrypted"} envelopes sealed with
  the bound key handle; without a bound key they refuse to write
- Backend failures never escape: they become False / None / []
"""

import asyncio
import logging
from typing import Any, Optional, List, Tuple
from redis.exceptions import RedisError

from mindscribe.crypto.codec import DecryptionError, encrypt, decrypt
from mindscribe.crypto.keys import KeyHandle, derive_key
from mindscribe.models.records import PlainRecord, EncryptedRecord, dump_record, load_record
from mindscribe.storage.backends import StorageBackend

logger = logging.getLogger(__name__)

STORAGE_ERRORS = (RedisError, OSError)


class EncryptedStore:
    """Save/get/remove/list over a named collection"""

    def __init__(
        self,
        backend: StorageBackend,
        name: str,
        use_encryption: bool = False,
    ):
        self.backend = backend
        self.name = name
        self.use_encryption = use_encryption
        self._key: Optional[KeyHandle] = None

    @property
    def has_key(self) -> bool:
        return self._key is not None

    # ------------------------------------------------------------------
    # Key lifecycle
    # ------------------------------------------------------------------

    async def set_encryption_key(self, secret: str, salt: bytes):
        """Derive and bind the key used by save/get (no-op for plain stores)"""
        if not self.use_encryption:
            return
        # PBKDF2 is CPU bound, so run it in the executor
        loop = asyncio.get_running_loop()
        key = await loop.run_in_executor(None, derive_key, secret, salt)
        self.bind_key(key)

    def bind_key(self, key: KeyHandle):
        """Bind an already derived key handle"""
        if self.use_encryption:
            self._key = key

    def clear_encryption_key(self):
        """Forget the bound key"""
        self._key = None

    # ------------------------------------------------------------------
    # Record operations
    # ------------------------------------------------------------------

    def _seal(self, value: Any) -> Optional[str]:
        if not self.use_encryption:
            return dump_record(PlainRecord(value=value))
        if self._key is None:
            logger.warning(
                "Refusing to write [%s/...]: no encryption key bound", self.name
            )
            return None
        return dump_record(encrypt(value, self._key))

    async def save(self, key: str, value: Any) -> bool:
        """
        Save value at key, overwriting any existing value

        Returns:
            True on success, False if the value could not be written
        """
        try:
            payload = self._seal(value)
        except (TypeError, ValueError) as e:
            logger.error("Storage save error [%s/%s]: unserializable value: %s", self.name, key, e)
            return False
        if payload is None:
            return False

        try:
            await self.backend.set_item(self.name, key, payload)
            return True
        except STORAGE_ERRORS as e:
            logger.error("Storage save error [%s/%s]: %s", self.name, key, e)
            return False

    async def get(self, key: str) -> Any:
        """
        Get value at key

        Returns:
            The stored value, or None if missing or unreadable
        """
        try:
            raw = await self.backend.get_item(self.name, key)
        except STORAGE_ERRORS as e:
            logger.error("Storage get error [%s/%s]: %s", self.name, key, e)
            return None

        if raw is None:
            return None

        record = load_record(raw)
        if record is None:
            return None
        if isinstance(record, PlainRecord):
            return record.value
        return self._open(key, record)

    def _open(self, key: str, record: EncryptedRecord) -> Any:
        if self._key is None:
            logger.warning("Cannot read [%s/%s]: no encryption key bound", self.name, key)
            return None
        try:
            return decrypt(record, self._key)
        except DecryptionError as e:
            logger.warning("Cannot read [%s/%s]: %s", self.name, key, e)
            return None

    async def remove(self, key: str) -> bool:
        """Remove key"""
        try:
            await self.backend.remove_item(self.name, key)
            return True
        except STORAGE_ERRORS as e:
            logger.error("Storage remove error [%s/%s]: %s", self.name, key, e)
            return False

    async def clear(self) -> bool:
        """Remove every key in the collection"""
        try:
            await self.backend.clear(self.name)
            return True
        except STORAGE_ERRORS as e:
            logger.error("Storage clear error [%s]: %s", self.name, e)
            return False

    async def keys(self) -> List[str]:
        """All keys in the collection"""
        try:
            return await self.backend.keys(self.name)
        except STORAGE_ERRORS as e:
            logger.error("Storage keys error [%s]: %s", self.name, e)
            return []

    async def get_all(self) -> List[Tuple[str, Any]]:
        """All readable (key, value) pairs; unreadable records are skipped"""
        items = []
        for key in await self.keys():
            value = await self.get(key)
            if value is not None:
                items.append((key, value))
        return items

    def __repr__(self) -> str:
        return (
            f"EncryptedStore(name={self.name!r}, use_encryption={self.use_encryption}, "
            f"has_key={self.has_key})"
        )
