"""
Summary parsing

Models often wrap the requested JSON object in prose or code fences. The
parser scans the text for the first JSON object that fits the summary
schema; if none does, the text itself becomes an unstructured summary.
"""

import json
from typing import Any, List, Literal, Union
from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator


DEFAULT_SUMMARY_TEXT = "Conversation in progress."


def _as_text_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if str(item).strip()]


class StructuredSummary(BaseModel):
    """Summary fields extracted from a JSON payload"""
    kind: Literal["structured"] = "structured"
    summary: str = DEFAULT_SUMMARY_TEXT
    key_topics: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("keyTopics", "key_topics"),
    )
    emotional_themes: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("emotionalThemes", "emotional_themes"),
    )
    user_mentions: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("userMentions", "user_mentions"),
    )

    @field_validator("summary", mode="before")
    @classmethod
    def _summary_text(cls, value: Any) -> str:
        if value is None:
            return DEFAULT_SUMMARY_TEXT
        text = str(value).strip()
        return text or DEFAULT_SUMMARY_TEXT

    @field_validator("key_topics", "emotional_themes", "user_mentions", mode="before")
    @classmethod
    def _text_list(cls, value: Any) -> List[str]:
        return _as_text_list(value)


class UnstructuredSummary(BaseModel):
    """Raw model text used as the summary"""
    kind: Literal["unstructured"] = "unstructured"
    raw_text: str


SummaryParseResult = Union[StructuredSummary, UnstructuredSummary]


def _json_objects(text: str):
    """Yield every JSON object that starts somewhere in text, in order"""
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            obj, _ = decoder.raw_decode(text, start)
        except ValueError:
            obj = None
        if isinstance(obj, dict):
            yield obj
        start = text.find("{", start + 1)


def parse_summary_response(text: str, max_length: int = 500) -> SummaryParseResult:
    """
    Parse model output into a summary

    Never raises: text without a usable JSON object comes back as an
    UnstructuredSummary truncated to max_length.
    """
    text = text or ""
    for candidate in _json_objects(text):
        if "summary" not in candidate:
            continue
        try:
            parsed = StructuredSummary.model_validate(candidate)
        except ValidationError:
            continue
        parsed.summary = parsed.summary[:max_length]
        return parsed

    raw = text.strip()[:max_length]
    return UnstructuredSummary(raw_text=raw or DEFAULT_SUMMARY_TEXT)
