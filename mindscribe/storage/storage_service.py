"""Storage service - the per-user set of collections"""

import asyncio
import logging
from typing import List

from mindscribe.crypto.keys import KeyHandle, derive_key
from mindscribe.storage.backends import StorageBackend
from mindscribe.storage.encrypted_store import EncryptedStore

logger = logging.getLogger(__name__)


class StorageService:
    """
    Collections used by the assistant

    - users, settings: plaintext (salts and password hashes are not secret)
    - journals, chats, analysis, assessments: encrypted with the user's key
    """

    def __init__(self, backend: StorageBackend):
        self.backend = backend

        self.users = EncryptedStore(backend, "users", use_encryption=False)
        self.settings = EncryptedStore(backend, "settings", use_encryption=False)

        self.journals = EncryptedStore(backend, "journals", use_encryption=True)
        self.chats = EncryptedStore(backend, "chats", use_encryption=True)
        self.analysis = EncryptedStore(backend, "analysis", use_encryption=True)
        self.assessments = EncryptedStore(backend, "assessments", use_encryption=True)

    def encrypted_stores(self) -> List[EncryptedStore]:
        return [self.journals, self.chats, self.analysis, self.assessments]

    async def initialize_for_user(self, secret: str, salt: bytes):
        """Derive the user's key once and bind it on every encrypted collection"""
        loop = asyncio.get_running_loop()
        key = await loop.run_in_executor(None, derive_key, secret, salt)
        self.bind_key(key)
        logger.info("Storage encryption initialized")

    def bind_key(self, key: KeyHandle):
        for store in self.encrypted_stores():
            store.bind_key(key)

    def clear_encryption_keys(self):
        """Unbind the key from every encrypted collection"""
        for store in self.encrypted_stores():
            store.clear_encryption_key()
        logger.info("Storage encryption keys cleared")
