"""Live chat turn: persist, build context, stream, summarize"""

import logging
from typing import AsyncIterator, Optional

from mindscribe.inference.engine import CHAT_CONFIG, InferenceEngine, InferenceError
from mindscribe.memory.memory_manager import MemoryManager
from mindscribe.models.conversation import ChatSession
from mindscribe.prompts.system_prompts import SystemPromptBuilder

logger = logging.getLogger(__name__)


class ChatService:
    """Run chat turns against a session with bounded memory context"""

    def __init__(
        self,
        memory_manager: MemoryManager,
        engine: InferenceEngine,
        prompt_builder: Optional[SystemPromptBuilder] = None,
    ):
        self.memory = memory_manager
        self.engine = engine
        self.prompt_builder = prompt_builder or SystemPromptBuilder()

    def build_system_prompt(self, content: str, user_name: Optional[str] = None) -> str:
        prompt = self.prompt_builder.generate_system_prompt(
            user_name=user_name,
            session_type="chat",
            time_of_day=self.prompt_builder.get_time_of_day(),
        )
        if self.prompt_builder.contains_crisis_signals(content):
            prompt += self.prompt_builder.crisis_response_addition()
        return prompt

    async def send_message(
        self,
        session: ChatSession,
        content: str,
        user_name: Optional[str] = None,
    ) -> AsyncIterator[str]:
        """
        Add a user message and stream the assistant reply

        The session is updated in place: the user message is persisted before
        generation, the assistant message after the stream completes, then the
        rolling summary is refreshed if due.

        Raises:
            ValueError: blank content
            InferenceError: the engine is unavailable or failed
        """
        if not content or not content.strip():
            raise ValueError("Message content must not be empty")

        await self.memory.add_message(session, "user", content)

        if not self.engine.is_available():
            raise InferenceError("No inference model available")

        history = self.memory.build_conversation_history(session)
        system_prompt = self.build_system_prompt(content, user_name)

        fragments = []
        async for fragment in self.engine.generate(history, CHAT_CONFIG, system_prompt):
            fragments.append(fragment)
            yield fragment

        reply = "".join(fragments)
        if not reply.strip():
            logger.warning("Empty reply for session %s, nothing stored", session.id)
            return

        await self.memory.add_message(session, "assistant", reply)

        if self.memory.needs_summary_update(session):
            await self.memory.summarize(session, self.engine)
