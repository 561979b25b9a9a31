"""
Storage Backends - raw persistence for named collections

A backend stores JSON text under (collection, key). It knows nothing about
encryption; EncryptedStore layers that on top. One backend instance is
shared by every collection of a StorageService.
"""

import logging
import os
from abc import ABC, abstractmethod
from typing import Optional, Dict, List
import redis.asyncio as redis
from redis.asyncio import Redis

logger = logging.getLogger(__name__)


class StorageBackend(ABC):
    """Async key/value persistence grouped by collection"""

    @abstractmethod
    async def set_item(self, collection: str, key: str, value: str) -> None:
        """Write value, overwriting any existing one"""

    @abstractmethod
    async def get_item(self, collection: str, key: str) -> Optional[str]:
        """Read value, or None if the key does not exist"""

    @abstractmethod
    async def remove_item(self, collection: str, key: str) -> None:
        """Delete key (no error if missing)"""

    @abstractmethod
    async def clear(self, collection: str) -> None:
        """Delete every key in the collection"""

    @abstractmethod
    async def keys(self, collection: str) -> List[str]:
        """All keys in the collection"""


class InMemoryBackend(StorageBackend):
    """Process-local backend for tests and ephemeral sessions"""

    def __init__(self):
        self._collections: Dict[str, Dict[str, str]] = {}

    async def set_item(self, collection: str, key: str, value: str) -> None:
        self._collections.setdefault(collection, {})[key] = value

    async def get_item(self, collection: str, key: str) -> Optional[str]:
        return self._collections.get(collection, {}).get(key)

    async def remove_item(self, collection: str, key: str) -> None:
        self._collections.get(collection, {}).pop(key, None)

    async def clear(self, collection: str) -> None:
        self._collections.pop(collection, None)

    async def keys(self, collection: str) -> List[str]:
        return list(self._collections.get(collection, {}))


class RedisBackend(StorageBackend):
    """
    Redis-backed persistence

    Layout:
    - One hash per collection: "<namespace>:<collection>"
    - Hash field = record key, hash value = JSON text
    """

    def __init__(
        self,
        client: Optional[Redis] = None,
        namespace: Optional[str] = None,
    ):
        self.host = os.getenv("REDIS_HOST", "localhost")
        self.port = int(os.getenv("REDIS_PORT", "6379"))
        self.password = os.getenv("REDIS_PASSWORD")
        self.db = int(os.getenv("REDIS_DB", "6"))
        self.namespace = namespace or os.getenv("STORAGE_NAMESPACE", "mindscribe")
        self.client: Optional[Redis] = client

    async def connect(self):
        """Connect to Redis"""
        if self.client is not None:
            return
        try:
            self.client = redis.from_url(
                f"redis://{self.host}:{self.port}/{self.db}",
                password=self.password,
                decode_responses=True,
            )
            await self.client.ping()
        except Exception as e:
            logger.error("Redis connection failed: %s. Storage unavailable.", e)
            self.client = None

    async def disconnect(self):
        """Disconnect from Redis"""
        if self.client:
            await self.client.aclose()
            self.client = None

    async def health_check(self) -> bool:
        """Check Redis connection health"""
        if not self.client:
            return False
        try:
            await self.client.ping()
            return True
        except Exception:
            return False

    def _hash_name(self, collection: str) -> str:
        return f"{self.namespace}:{collection}"

    def _require_client(self) -> Redis:
        if self.client is None:
            raise ConnectionError("Redis backend is not connected")
        return self.client

    async def set_item(self, collection: str, key: str, value: str) -> None:
        await self._require_client().hset(self._hash_name(collection), key, value)

    async def get_item(self, collection: str, key: str) -> Optional[str]:
        value = await self._require_client().hget(self._hash_name(collection), key)
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    async def remove_item(self, collection: str, key: str) -> None:
        await self._require_client().hdel(self._hash_name(collection), key)

    async def clear(self, collection: str) -> None:
        await self._require_client().delete(self._hash_name(collection))

    async def keys(self, collection: str) -> List[str]:
        keys = await self._require_client().hkeys(self._hash_name(collection))
        return [k.decode("utf-8") if isinstance(k, bytes) else k for k in keys]
