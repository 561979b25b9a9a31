"""
Inference engine adapter

The memory layer only needs a streaming text generator:

    engine.generate(history, config, system_prompt) -> async iterator of str

LiteLLMEngine implements it on top of any LiteLLM-supported provider
(Ollama, OpenAI, Anthropic, ...). Tests substitute a scripted engine.
"""

import logging
import os
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol
from pydantic import BaseModel, Field
import litellm

logger = logging.getLogger(__name__)


class GenerationConfig(BaseModel):
    """Sampling parameters for one generation"""
    temperature: float = Field(0.7, ge=0, le=2)
    max_tokens: int = Field(512, ge=1)
    top_p: float = Field(0.9, gt=0, le=1)


CHAT_CONFIG = GenerationConfig(temperature=0.7, max_tokens=512, top_p=0.9)
# Lower temperature for more factual summaries
SUMMARY_CONFIG = GenerationConfig(temperature=0.3, max_tokens=300, top_p=0.9)


class InferenceError(Exception):
    """The inference engine failed to produce a response"""


class InferenceEngine(Protocol):
    """Streaming text generator used for chat and summarization"""

    def is_available(self) -> bool:
        ...

    def generate(
        self,
        history: List[Dict[str, str]],
        config: GenerationConfig,
        system_prompt: Optional[str] = None,
    ) -> AsyncIterator[str]:
        ...


def build_messages(
    history: List[Dict[str, str]],
    system_prompt: Optional[str] = None,
) -> List[Dict[str, str]]:
    """Prepend the system prompt (if any) to the conversation history"""
    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.extend(
        {"role": msg["role"], "content": msg["content"]} for msg in history
    )
    return messages


async def collect(fragments: AsyncIterator[str]) -> str:
    """Concatenate a fragment stream into the full response"""
    parts = []
    async for fragment in fragments:
        parts.append(fragment)
    return "".join(parts)


class LiteLLMEngine:
    """Streams chat completions through LiteLLM"""

    def __init__(
        self,
        model: Optional[str] = None,
        api_base: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.model = model if model is not None else os.getenv("INFERENCE_MODEL", "ollama/llama3")
        self.api_base = api_base or os.getenv("INFERENCE_API_BASE")
        self.timeout_seconds = timeout_seconds or float(
            os.getenv("INFERENCE_TIMEOUT_SECONDS", "120")
        )

    def is_available(self) -> bool:
        return bool(self.model)

    def _completion_params(
        self,
        history: List[Dict[str, str]],
        config: GenerationConfig,
        system_prompt: Optional[str],
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "model": self.model,
            "messages": build_messages(history, system_prompt),
            "temperature": config.temperature,
            "max_tokens": config.max_tokens,
            "top_p": config.top_p,
            "stream": True,
            "timeout": self.timeout_seconds,
        }
        if self.api_base:
            params["api_base"] = self.api_base
        return params

    async def generate(
        self,
        history: List[Dict[str, str]],
        config: GenerationConfig,
        system_prompt: Optional[str] = None,
    ) -> AsyncIterator[str]:
        """
        Stream response fragments

        Raises:
            InferenceError: the provider call failed (before or mid-stream)
        """
        if not self.is_available():
            raise InferenceError("No inference model configured")

        params = self._completion_params(history, config, system_prompt)
        try:
            response = await litellm.acompletion(**params)
            async for chunk in response:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
        except Exception as e:
            logger.error("Inference with %s failed: %s", self.model, e)
            raise InferenceError(f"LLM request failed: {e}") from e
