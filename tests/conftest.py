"""Shared fixtures"""

import asyncio
from typing import Dict, List, Optional

import pytest

from mindscribe.crypto.keys import derive_key
from mindscribe.inference.engine import GenerationConfig, InferenceError
from mindscribe.memory.memory_manager import MemoryManager
from mindscribe.memory.session_store import SessionStore
from mindscribe.models.conversation import MemoryConfig
from mindscribe.storage.backends import InMemoryBackend
from mindscribe.storage.storage_service import StorageService


SALT = bytes(range(16))
OTHER_SALT = bytes(range(16, 32))
SECRET = "correct horse battery staple"


class ScriptedEngine:
    """Inference engine that replays canned responses in small fragments"""

    def __init__(
        self,
        responses: Optional[List[str]] = None,
        fail: bool = False,
        fail_after: Optional[int] = None,
        available: bool = True,
        hang: bool = False,
    ):
        self.responses = list(responses or [])
        self.fail = fail
        self.fail_after = fail_after
        self.available = available
        self.hang = hang
        self.calls: List[Dict] = []

    def is_available(self) -> bool:
        return self.available

    async def generate(self, history, config: GenerationConfig, system_prompt=None):
        self.calls.append({
            "history": list(history),
            "config": config,
            "system_prompt": system_prompt,
        })
        if self.hang:
            await asyncio.Event().wait()
        if self.fail:
            raise InferenceError("engine down")

        text = self.responses.pop(0) if self.responses else "I hear you."
        for index in range(0, len(text), 5):
            if self.fail_after is not None and index >= self.fail_after:
                raise InferenceError("connection dropped")
            yield text[index:index + 5]


@pytest.fixture(scope="session")
def key_handle():
    return derive_key(SECRET, SALT)


@pytest.fixture(scope="session")
def other_key_handle():
    return derive_key(SECRET, OTHER_SALT)


@pytest.fixture
def backend():
    return InMemoryBackend()


@pytest.fixture
def storage(backend, key_handle):
    service = StorageService(backend)
    service.bind_key(key_handle)
    return service


@pytest.fixture
def session_store(storage):
    return SessionStore(storage.chats)


@pytest.fixture
def memory(session_store):
    return MemoryManager(
        session_store,
        MemoryConfig(recent_window_size=6, summarize_threshold=4, max_summary_length=500),
    )


@pytest.fixture
def engine_factory():
    return ScriptedEngine
