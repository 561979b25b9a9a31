"""Pydantic models for API requests and responses"""

from typing import Optional, List
from pydantic import BaseModel, Field

from mindscribe.models.conversation import ChatMessage, ChatSession, ConversationSummary


class RegisterRequest(BaseModel):
    """Account registration"""
    username: str = Field(..., description="Unique username (min 3 chars)")
    password: str = Field(..., description="Password (min 6 chars)")
    email: Optional[str] = None


class LoginRequest(BaseModel):
    """Login credentials"""
    username: str
    password: str


class CreateSessionRequest(BaseModel):
    """New chat session"""
    title: Optional[str] = Field(None, max_length=200)


class SendMessageRequest(BaseModel):
    """User message for a session"""
    content: str = Field(..., min_length=1, description="Message content")
    stream: bool = Field(False, description="Stream the reply as SSE")
    user_name: Optional[str] = Field(None, description="Display name for the system prompt")


class SessionListItem(BaseModel):
    """Session overview"""
    id: str
    title: str
    message_count: int
    preview: str
    updated_at: str


class SendMessageResponse(BaseModel):
    """Non-streaming chat reply"""
    session: ChatSession
    reply: str


class MemoryContextResponse(BaseModel):
    """Memory context as sent to the model"""
    session_id: str
    recent_messages: List[ChatMessage]
    summary: Optional[ConversationSummary] = None
    context_prompt: str
    needs_summary_update: bool
