"""Conversation and memory models"""

import os
import uuid
from datetime import datetime, timezone
from typing import Optional, List, Literal
from pydantic import BaseModel, ConfigDict, Field


Role = Literal["user", "assistant", "system"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


class ChatMessage(BaseModel):
    """Single message in a conversation"""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    role: Role
    content: str
    timestamp: datetime = Field(default_factory=utcnow)


class ConversationSummary(BaseModel):
    """Rolling summary of the older part of a conversation"""
    summary: str
    key_topics: List[str] = Field(default_factory=list)
    emotional_themes: List[str] = Field(default_factory=list)
    user_mentions: List[str] = Field(default_factory=list)
    # Number of older (non-system) messages represented by this summary
    message_count: int = Field(0, ge=0)
    updated_at: datetime = Field(default_factory=utcnow)


class ChatSession(BaseModel):
    """Conversation owned by a single user"""
    id: str = Field(default_factory=new_id)
    owner_id: str
    title: str
    messages: List[ChatMessage] = Field(default_factory=list)
    summary: Optional[ConversationSummary] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def conversation_messages(self) -> List[ChatMessage]:
        """Messages that take part in windowing (system messages excluded)"""
        return [msg for msg in self.messages if msg.role != "system"]


class MemoryContext(BaseModel):
    """Context package handed to the inference engine"""
    recent_messages: List[ChatMessage] = Field(default_factory=list)
    summary: Optional[ConversationSummary] = None
    context_prompt: str = ""


class MemoryConfig(BaseModel):
    """Windowing and summarization settings"""
    recent_window_size: int = Field(6, ge=1)
    summarize_threshold: int = Field(4, ge=1)
    max_summary_length: int = Field(500, ge=1)

    @classmethod
    def from_env(cls) -> "MemoryConfig":
        """Build config from MEMORY_* environment variables"""
        return cls(
            recent_window_size=int(os.getenv("MEMORY_RECENT_WINDOW", "6")),
            summarize_threshold=int(os.getenv("MEMORY_SUMMARIZE_THRESHOLD", "4")),
            max_summary_length=int(os.getenv("MEMORY_MAX_SUMMARY_LENGTH", "500")),
        )
