"""
Conversational memory manager

Keeps the most recent messages verbatim and folds older ones into a rolling
summary, so the context handed to the model stays bounded however long the
conversation grows.

Windowing (non-system messages only):

    [ summarized | unsummarized increment | recent window ]
    0            summary.message_count    older            total

where older = total - recent_window_size.
"""

import logging
from typing import Optional, List, Dict

from mindscribe.inference.engine import InferenceEngine, SUMMARY_CONFIG, collect
from mindscribe.memory.quick_summary import compose_summary, extract_emotions, extract_topics
from mindscribe.memory.session_store import SessionStore
from mindscribe.memory.summary_parser import StructuredSummary, parse_summary_response
from mindscribe.models.conversation import (
    ChatMessage,
    ChatSession,
    ConversationSummary,
    MemoryConfig,
    MemoryContext,
    Role,
    utcnow,
)

logger = logging.getLogger(__name__)


TITLE_MAX_LENGTH = 50
# Only cut at a word boundary if it keeps a reasonably long title
TITLE_MIN_WORD_CUT = 20

SUMMARIZATION_PROMPT = """You are a conversation summarizer. Analyze the conversation and provide a concise summary.

Output format (JSON):
{
  "summary": "Brief 2-3 sentence summary of the conversation",
  "keyTopics": ["topic1", "topic2", "topic3"],
  "emotionalThemes": ["emotion1", "emotion2"],
  "userMentions": ["important thing user mentioned"]
}

Rules:
- Keep summary under 100 words
- Extract 3-5 key topics maximum
- Note emotional themes (anxiety, hope, frustration, progress, etc.)
- Capture important user mentions (goals, concerns, achievements)
- Focus on information relevant for ongoing support

Conversation to summarize:
"""

_ROLE_LABELS = {"user": "User", "assistant": "Assistant", "system": "System"}


class MemoryManager:
    """Manage conversational memory"""

    def __init__(
        self,
        session_store: SessionStore,
        config: Optional[MemoryConfig] = None,
    ):
        self.session_store = session_store
        self.config = config or MemoryConfig()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def get_config(self) -> MemoryConfig:
        return self.config.model_copy()

    def set_config(self, **overrides) -> MemoryConfig:
        """Update config fields (validated)"""
        self.config = MemoryConfig(**{**self.config.model_dump(), **overrides})
        return self.get_config()

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def create_session(self, owner_id: str, title: Optional[str] = None) -> ChatSession:
        return await self.session_store.create_session(owner_id, title)

    async def get_session(self, session_id: str) -> Optional[ChatSession]:
        return await self.session_store.get_session(session_id)

    async def get_user_sessions(self, owner_id: str) -> List[ChatSession]:
        return await self.session_store.get_sessions_for_owner(owner_id)

    async def save_session(self, session: ChatSession) -> bool:
        return await self.session_store.save_session(session)

    async def delete_session(self, session_id: str) -> bool:
        return await self.session_store.delete_session(session_id)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def add_message(self, session: ChatSession, role: Role, content: str) -> ChatSession:
        """Append a message, auto-title on the first user message, persist"""
        if not content or not content.strip():
            raise ValueError("Message content must not be empty")

        is_first_user_message = role == "user" and not any(
            msg.role == "user" for msg in session.messages
        )

        session.messages.append(ChatMessage(role=role, content=content))
        if is_first_user_message:
            session.title = self.generate_title(content)

        if not await self.session_store.save_session(session):
            logger.warning("Message appended to session %s but not persisted", session.id)
        return session

    @staticmethod
    def generate_title(content: str) -> str:
        """Short title from a message, cut at a word boundary"""
        text = " ".join(content.split())
        if len(text) <= TITLE_MAX_LENGTH:
            return text

        truncated = text[:TITLE_MAX_LENGTH]
        last_space = truncated.rfind(" ")
        if last_space > TITLE_MIN_WORD_CUT:
            truncated = truncated[:last_space]
        return truncated + "..."

    @staticmethod
    def format_message_preview(content: str, max_length: int = 100) -> str:
        if len(content) <= max_length:
            return content
        return content[:max_length] + "..."

    # ------------------------------------------------------------------
    # Windowing
    # ------------------------------------------------------------------

    def _older_count(self, session: ChatSession) -> int:
        total = len(session.conversation_messages())
        return max(0, total - self.config.recent_window_size)

    @staticmethod
    def _summarized_count(session: ChatSession) -> int:
        return session.summary.message_count if session.summary else 0

    def needs_summary_update(self, session: ChatSession) -> bool:
        """True once enough new messages have aged out of the recent window"""
        older = self._older_count(session)
        if older <= 0:
            return False

        unsummarized = older - self._summarized_count(session)
        return unsummarized >= self.config.summarize_threshold

    def get_memory_context(self, session: ChatSession) -> MemoryContext:
        """Recent messages plus the summary of older ones"""
        messages = session.conversation_messages()
        older = self._older_count(session)

        # Never re-include messages the summary already represents, even if
        # the window grew since the summary was written.
        start = max(older, min(self._summarized_count(session), len(messages)))

        context_prompt = ""
        if session.summary and start > 0:
            context_prompt = self.format_summary_for_prompt(session.summary)

        return MemoryContext(
            recent_messages=messages[start:],
            summary=session.summary,
            context_prompt=context_prompt,
        )

    @staticmethod
    def format_summary_for_prompt(summary: ConversationSummary) -> str:
        """Render the summary as a leading context block"""
        prompt = "\n## Previous Conversation Context:\n"
        prompt += f"{summary.summary}\n"

        if summary.key_topics:
            prompt += f"\nKey topics discussed: {', '.join(summary.key_topics)}\n"
        if summary.emotional_themes:
            prompt += f"Emotional themes: {', '.join(summary.emotional_themes)}\n"
        if summary.user_mentions:
            prompt += f"Important mentions: {'; '.join(summary.user_mentions)}\n"

        prompt += "\n---\n"
        return prompt

    def build_conversation_history(self, session: ChatSession) -> List[Dict[str, str]]:
        """Memory context as the role/content list fed to the model"""
        memory = self.get_memory_context(session)
        history = []
        if memory.context_prompt:
            history.append({"role": "system", "content": memory.context_prompt})
        history.extend(
            {"role": msg.role, "content": msg.content} for msg in memory.recent_messages
        )
        return history

    # ------------------------------------------------------------------
    # Summarization
    # ------------------------------------------------------------------

    def generate_summary_prompt(self, session: ChatSession) -> Optional[str]:
        """
        Prompt covering only the unsummarized increment

        Returns None when there is nothing new to summarize.
        """
        messages = session.conversation_messages()
        older = self._older_count(session)
        start = min(self._summarized_count(session), older)
        increment = messages[start:older]

        if not increment:
            return None

        conversation_text = ""
        if session.summary:
            conversation_text += f"Previous summary: {session.summary.summary}\n\n"
            conversation_text += "New messages to incorporate:\n"

        for msg in increment:
            conversation_text += f"{_ROLE_LABELS[msg.role]}: {msg.content}\n\n"

        return SUMMARIZATION_PROMPT + conversation_text

    async def _commit_summary(
        self,
        session: ChatSession,
        summary: ConversationSummary,
    ) -> ChatSession:
        """Persist a summary; the caller's session changes only if the write succeeds"""
        updated = session.model_copy(deep=True)
        updated.summary = summary

        if not await self.session_store.save_session(updated):
            logger.warning("Summary for session %s not persisted", session.id)
            return session

        session.summary = updated.summary
        session.updated_at = updated.updated_at
        return session

    async def update_summary(self, session: ChatSession, raw_model_output: str) -> ChatSession:
        """Parse a model summary (with plain-text fallback) and persist it"""
        parsed = parse_summary_response(raw_model_output, self.config.max_summary_length)

        if isinstance(parsed, StructuredSummary):
            fields = {
                "summary": parsed.summary,
                "key_topics": parsed.key_topics,
                "emotional_themes": parsed.emotional_themes,
                "user_mentions": parsed.user_mentions,
            }
        else:
            logger.warning("Failed to parse summary JSON for session %s, using raw text", session.id)
            fields = {"summary": parsed.raw_text}

        summary = ConversationSummary(
            **fields,
            message_count=self._older_count(session),
            updated_at=utcnow(),
        )
        return await self._commit_summary(session, summary)

    def create_quick_summary(self, session: ChatSession) -> ConversationSummary:
        """Keyword summary of older messages, no model needed"""
        messages = session.conversation_messages()
        older = messages[:self._older_count(session)]

        if not older:
            return ConversationSummary(summary="New conversation.", message_count=0)

        topics = extract_topics(older)
        return ConversationSummary(
            summary=compose_summary(len(older), topics),
            key_topics=topics,
            emotional_themes=extract_emotions(older),
            user_mentions=[],
            message_count=len(older),
        )

    async def apply_quick_summary(self, session: ChatSession) -> ChatSession:
        return await self._commit_summary(session, self.create_quick_summary(session))

    async def summarize(self, session: ChatSession, engine: InferenceEngine) -> ChatSession:
        """
        Summarize the unsummarized increment with the model

        Falls back to the keyword summary if the engine is unavailable or
        fails. Cancellation propagates and leaves the session untouched.
        """
        prompt = self.generate_summary_prompt(session)
        if prompt is None:
            return session

        if not engine.is_available():
            logger.info("Inference unavailable, using quick summary for session %s", session.id)
            return await self.apply_quick_summary(session)

        try:
            response = await collect(
                engine.generate([{"role": "user", "content": prompt}], SUMMARY_CONFIG)
            )
        except Exception as e:
            logger.warning("Summary generation failed for session %s: %s", session.id, e)
            return await self.apply_quick_summary(session)

        return await self.update_summary(session, response)
