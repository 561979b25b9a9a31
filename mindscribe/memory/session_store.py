"""Chat session persistence"""

import logging
from typing import Optional, List
from pydantic import ValidationError

from mindscribe.models.conversation import ChatSession, utcnow
from mindscribe.storage.encrypted_store import EncryptedStore

logger = logging.getLogger(__name__)


class SessionStore:
    """Session CRUD on top of one (encrypted) collection"""

    def __init__(self, store: EncryptedStore):
        self.store = store

    async def create_session(
        self,
        owner_id: str,
        title: Optional[str] = None,
    ) -> ChatSession:
        """Create and persist an empty session"""
        now = utcnow()
        session = ChatSession(
            owner_id=owner_id,
            title=title or f"Chat {now.date().isoformat()}",
            created_at=now,
            updated_at=now,
        )
        if not await self.save_session(session):
            logger.warning("Session %s created but not persisted", session.id)
        return session

    async def get_session(self, session_id: str) -> Optional[ChatSession]:
        """Get session by ID (None if missing or unreadable)"""
        data = await self.store.get(session_id)
        if data is None:
            return None
        try:
            return ChatSession.model_validate(data)
        except ValidationError as e:
            logger.warning("Discarding malformed session %s: %s", session_id, e)
            return None

    async def get_sessions_for_owner(self, owner_id: str) -> List[ChatSession]:
        """All sessions of an owner, most recently updated first"""
        sessions = []
        for session_id, data in await self.store.get_all():
            try:
                session = ChatSession.model_validate(data)
            except ValidationError:
                logger.warning("Skipping malformed session %s", session_id)
                continue
            if session.owner_id == owner_id:
                sessions.append(session)

        sessions.sort(key=lambda s: s.updated_at, reverse=True)
        return sessions

    async def save_session(self, session: ChatSession) -> bool:
        """Save session (refreshes updated_at)"""
        session.updated_at = utcnow()
        return await self.store.save(session.id, session.model_dump(mode="json"))

    async def delete_session(self, session_id: str) -> bool:
        """Hard-delete a session"""
        return await self.store.remove(session_id)
