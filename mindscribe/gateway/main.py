"""
MindScribe Gateway - Main FastAPI Application

HTTP surface over the encrypted session store and conversation memory:
local authentication, session CRUD, streaming chat and summarization.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

import litellm
from mindscribe.auth.auth_service import AuthService
from mindscribe.chat.chat_service import ChatService
from mindscribe.gateway.models import (
    CreateSessionRequest,
    LoginRequest,
    MemoryContextResponse,
    RegisterRequest,
    SendMessageRequest,
    SendMessageResponse,
    SessionListItem,
)
from mindscribe.inference.engine import InferenceEngine, InferenceError, LiteLLMEngine
from mindscribe.memory.memory_manager import MemoryManager
from mindscribe.memory.session_store import SessionStore
from mindscribe.models.conversation import ChatSession, MemoryConfig
from mindscribe.models.user import User
from mindscribe.prompts.system_prompts import SystemPromptBuilder
from mindscribe.storage.backends import InMemoryBackend, RedisBackend, StorageBackend
from mindscribe.storage.storage_service import StorageService
from mindscribe.streaming.stream_handler import StreamHandler

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def backend_from_env() -> StorageBackend:
    """Pick the storage backend named by STORAGE_BACKEND"""
    kind = os.getenv("STORAGE_BACKEND", "memory").lower()
    if kind == "redis":
        return RedisBackend()
    if kind != "memory":
        logger.warning("Unknown STORAGE_BACKEND %r, using in-memory storage", kind)
    return InMemoryBackend()


def create_app(
    storage: Optional[StorageService] = None,
    engine: Optional[InferenceEngine] = None,
    memory_config: Optional[MemoryConfig] = None,
) -> FastAPI:
    """Build the app with its services constructed once and kept on app.state"""
    storage = storage or StorageService(backend_from_env())
    engine = engine or LiteLLMEngine()
    memory_manager = MemoryManager(
        SessionStore(storage.chats),
        memory_config or MemoryConfig.from_env(),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events"""
        if isinstance(storage.backend, RedisBackend):
            await storage.backend.connect()
        yield
        app.state.auth.logout()
        if isinstance(storage.backend, RedisBackend):
            await storage.backend.disconnect()

    app = FastAPI(
        title="MindScribe Gateway",
        description="Encrypted chat sessions with bounded conversational memory",
        version=VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.storage = storage
    app.state.engine = engine
    app.state.auth = AuthService(storage)
    app.state.memory = memory_manager
    app.state.chat = ChatService(memory_manager, engine, SystemPromptBuilder())

    _register_routes(app)
    return app


def _require_user(request: Request) -> User:
    user = request.app.state.auth.get_current_user()
    if not user:
        raise HTTPException(status_code=401, detail="Not logged in")
    return user


async def _load_owned_session(request: Request, session_id: str) -> ChatSession:
    user = _require_user(request)
    session = await request.app.state.memory.get_session(session_id)
    # Sessions of other owners are indistinguishable from missing ones
    if not session or session.owner_id != user.username:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def _register_routes(app: FastAPI):

    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint"""
        backend = request.app.state.storage.backend
        storage_status = "connected"
        if isinstance(backend, RedisBackend) and not await backend.health_check():
            storage_status = "disconnected"
        return {
            "status": "healthy",
            "storage": storage_status,
            "inference": "available" if request.app.state.engine.is_available() else "unavailable",
            "version": VERSION,
        }

    # Auth endpoints
    @app.post("/v1/auth/register")
    async def register(request: Request, body: RegisterRequest):
        """Register and log in"""
        result = await request.app.state.auth.register(body.username, body.password, body.email)
        if not result.success:
            status = 409 if result.error == "Username already exists" else 400
            raise HTTPException(status_code=status, detail=result.error)
        return result.model_dump(mode="json")

    @app.post("/v1/auth/login")
    async def login(request: Request, body: LoginRequest):
        """Log in and unlock encrypted collections"""
        result = await request.app.state.auth.login(body.username, body.password)
        if not result.success:
            raise HTTPException(status_code=401, detail=result.error)
        return result.model_dump(mode="json")

    @app.post("/v1/auth/logout")
    async def logout(request: Request):
        """Log out and drop encryption keys"""
        request.app.state.auth.logout()
        return {"success": True}

    # Session endpoints
    @app.get("/v1/sessions")
    async def list_sessions(request: Request):
        """Sessions of the current user, most recent first"""
        user = _require_user(request)
        memory: MemoryManager = request.app.state.memory
        sessions = await memory.get_user_sessions(user.username)
        items = []
        for session in sessions:
            last = session.messages[-1].content if session.messages else ""
            items.append(SessionListItem(
                id=session.id,
                title=session.title,
                message_count=len(session.messages),
                preview=memory.format_message_preview(last),
                updated_at=session.updated_at.isoformat(),
            ))
        return {"data": [item.model_dump() for item in items], "object": "list"}

    @app.post("/v1/sessions", status_code=201)
    async def create_session(request: Request, body: Optional[CreateSessionRequest] = None):
        """Start a new session"""
        user = _require_user(request)
        title = body.title if body else None
        session = await request.app.state.memory.create_session(user.username, title)
        return session.model_dump(mode="json")

    @app.get("/v1/sessions/{session_id}")
    async def get_session(request: Request, session_id: str):
        """Get a session with its messages and summary"""
        session = await _load_owned_session(request, session_id)
        return session.model_dump(mode="json")

    @app.delete("/v1/sessions/{session_id}")
    async def delete_session(request: Request, session_id: str):
        """Hard-delete a session"""
        await _load_owned_session(request, session_id)
        deleted = await request.app.state.memory.delete_session(session_id)
        return {"id": session_id, "deleted": deleted}

    @app.post("/v1/sessions/{session_id}/messages")
    async def send_message(request: Request, session_id: str, body: SendMessageRequest):
        """Send a user message and get (or stream) the assistant reply"""
        session = await _load_owned_session(request, session_id)
        if not body.content.strip():
            raise HTTPException(status_code=400, detail="Message content must not be empty")

        chat: ChatService = request.app.state.chat
        fragments = chat.send_message(session, body.content, body.user_name)

        if body.stream:
            return StreamingResponse(
                StreamHandler.stream_fragments(fragments, session.id),
                media_type="text/event-stream",
            )

        parts = []
        try:
            async for fragment in fragments:
                parts.append(fragment)
        except InferenceError as e:
            raise HTTPException(status_code=502, detail=f"Inference failed: {e}")

        return SendMessageResponse(session=session, reply="".join(parts)).model_dump(mode="json")

    @app.get("/v1/sessions/{session_id}/memory")
    async def get_memory(request: Request, session_id: str):
        """Memory context that would accompany the next model call"""
        session = await _load_owned_session(request, session_id)
        memory: MemoryManager = request.app.state.memory
        context = memory.get_memory_context(session)
        return MemoryContextResponse(
            session_id=session.id,
            recent_messages=context.recent_messages,
            summary=context.summary,
            context_prompt=context.context_prompt,
            needs_summary_update=memory.needs_summary_update(session),
        ).model_dump(mode="json")

    @app.post("/v1/sessions/{session_id}/summarize")
    async def summarize_session(request: Request, session_id: str):
        """Refresh the rolling summary now"""
        session = await _load_owned_session(request, session_id)
        session = await request.app.state.memory.summarize(session, request.app.state.engine)
        return {
            "id": session.id,
            "summary": session.summary.model_dump(mode="json") if session.summary else None,
        }


logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
litellm.set_verbose = os.getenv("LOG_LEVEL", "INFO") == "DEBUG"

app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "mindscribe.gateway.main:app",
        host=os.getenv("GATEWAY_HOST", "0.0.0.0"),
        port=int(os.getenv("GATEWAY_PORT", "8000")),
    )
