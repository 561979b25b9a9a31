"""User account models"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from mindscribe.models.conversation import utcnow


class User(BaseModel):
    """Public view of a local user account"""
    username: str
    email: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    last_login: datetime = Field(default_factory=utcnow)


class StoredUser(User):
    """User record as persisted in the users collection"""
    password_hash: str

    def public(self) -> User:
        return User(**self.model_dump(exclude={"password_hash"}))


class AuthResult(BaseModel):
    """Outcome of a register/login attempt"""
    success: bool
    user: Optional[User] = None
    error: Optional[str] = None
