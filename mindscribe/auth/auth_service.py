"""Local single-owner authentication"""

import asyncio
import base64
import binascii
import hmac
import logging
from typing import Optional
from pydantic import ValidationError

from mindscribe.crypto.keys import SALT_LENGTH, generate_salt, hash_password
from mindscribe.models.conversation import utcnow
from mindscribe.models.user import AuthResult, StoredUser, User
from mindscribe.storage.storage_service import StorageService

logger = logging.getLogger(__name__)

MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6

INVALID_CREDENTIALS = "Invalid username or password"


def salt_key(username: str) -> str:
    return f"salt_{username}"


def user_key(username: str) -> str:
    return f"user_{username}"


class AuthService:
    """
    Register/login/logout against the plaintext users collection

    Per user:
    - salt_<username>: base64 salt, created once at registration
    - user_<username>: StoredUser with the PBKDF2 password hash

    Logging in binds the password-derived key on every encrypted
    collection; logging out unbinds it.
    """

    def __init__(self, storage: StorageService):
        self.storage = storage
        self.current_user: Optional[User] = None

    async def register(
        self,
        username: str,
        password: str,
        email: Optional[str] = None,
    ) -> AuthResult:
        """Register a new user and log them in"""
        if not username or len(username) < MIN_USERNAME_LENGTH:
            return AuthResult(success=False, error="Username must be at least 3 characters")
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            return AuthResult(success=False, error="Password must be at least 6 characters")

        if await self.storage.users.get(user_key(username)) is not None:
            return AuthResult(success=False, error="Username already exists")

        salt = generate_salt()
        password_hash = await self._hash_password(password, salt)

        now = utcnow()
        stored = StoredUser(
            username=username,
            email=email,
            password_hash=password_hash,
            created_at=now,
            last_login=now,
        )

        saved = await self.storage.users.save(
            salt_key(username), base64.b64encode(salt).decode("ascii")
        )
        saved = saved and await self.storage.users.save(
            user_key(username), stored.model_dump(mode="json")
        )
        if not saved:
            return AuthResult(success=False, error="Could not save user")

        await self.storage.initialize_for_user(password, salt)
        self.current_user = stored.public()
        logger.info("User registered: %s", username)
        return AuthResult(success=True, user=self.current_user)

    async def login(self, username: str, password: str) -> AuthResult:
        """Verify credentials and unlock the user's encrypted collections"""
        salt = await self._load_salt(username)
        if salt is None:
            return AuthResult(success=False, error=INVALID_CREDENTIALS)

        stored = await self._load_user(username)
        if stored is None or not password:
            return AuthResult(success=False, error=INVALID_CREDENTIALS)

        password_hash = await self._hash_password(password, salt)
        if not hmac.compare_digest(password_hash, stored.password_hash):
            return AuthResult(success=False, error=INVALID_CREDENTIALS)

        stored.last_login = utcnow()
        await self.storage.users.save(user_key(username), stored.model_dump(mode="json"))

        await self.storage.initialize_for_user(password, salt)
        self.current_user = stored.public()
        logger.info("User logged in: %s", username)
        return AuthResult(success=True, user=self.current_user)

    def logout(self):
        """Forget the current user and every encryption key"""
        if self.current_user:
            logger.info("User logged out: %s", self.current_user.username)
        self.current_user = None
        self.storage.clear_encryption_keys()

    def get_current_user(self) -> Optional[User]:
        return self.current_user

    def is_authenticated(self) -> bool:
        return self.current_user is not None

    async def _hash_password(self, password: str, salt: bytes) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, hash_password, password, salt)

    async def _load_salt(self, username: str) -> Optional[bytes]:
        encoded = await self.storage.users.get(salt_key(username))
        if not isinstance(encoded, str):
            return None
        try:
            salt = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError):
            logger.warning("Malformed salt for user %s", username)
            return None
        return salt if len(salt) == SALT_LENGTH else None

    async def _load_user(self, username: str) -> Optional[StoredUser]:
        data = await self.storage.users.get(user_key(username))
        if data is None:
            return None
        try:
            return StoredUser.model_validate(data)
        except ValidationError:
            logger.warning("Malformed user record for %s", username)
            return None
