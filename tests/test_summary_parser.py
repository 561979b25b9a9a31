"""Tests for summary response parsing"""

from mindscribe.memory.summary_parser import (
    DEFAULT_SUMMARY_TEXT,
    StructuredSummary,
    UnstructuredSummary,
    parse_summary_response,
)


def test_plain_json():
    """A bare JSON object is parsed with camelCase keys"""
    text = (
        '{"summary": "User talked about work stress.", '
        '"keyTopics": ["work", "sleep"], '
        '"emotionalThemes": ["anxiety"], '
        '"userMentions": ["new manager"]}'
    )
    result = parse_summary_response(text)
    assert isinstance(result, StructuredSummary)
    assert result.summary == "User talked about work stress."
    assert result.key_topics == ["work", "sleep"]
    assert result.emotional_themes == ["anxiety"]
    assert result.user_mentions == ["new manager"]


def test_json_wrapped_in_prose_and_fences():
    """JSON embedded in chatter is still found"""
    text = (
        "Sure! Here is the summary:\n```json\n"
        '{"summary": "Discussed family.", "keyTopics": ["family"]}\n'
        "```\nLet me know if you need more."
    )
    result = parse_summary_response(text)
    assert isinstance(result, StructuredSummary)
    assert result.summary == "Discussed family."
    assert result.key_topics == ["family"]
    assert result.emotional_themes == []


def test_snake_case_keys_accepted():
    """snake_case field names also work"""
    result = parse_summary_response('{"summary": "x", "key_topics": ["a"]}')
    assert isinstance(result, StructuredSummary)
    assert result.key_topics == ["a"]


def test_first_object_with_summary_wins():
    """Objects without a summary field are skipped"""
    text = '{"note": "ignore me"} then {"summary": "real one"} and {"summary": "later"}'
    result = parse_summary_response(text)
    assert isinstance(result, StructuredSummary)
    assert result.summary == "real one"


def test_bad_field_types_are_coerced():
    """Non-list topics become empty, empty summary gets a default"""
    result = parse_summary_response('{"summary": "", "keyTopics": "work", "emotionalThemes": [" hope ", ""]}')
    assert isinstance(result, StructuredSummary)
    assert result.summary == DEFAULT_SUMMARY_TEXT
    assert result.key_topics == []
    assert result.emotional_themes == ["hope"]


def test_structured_summary_is_truncated():
    """Summary text respects max_length"""
    result = parse_summary_response('{"summary": "' + "a" * 800 + '"}', max_length=100)
    assert isinstance(result, StructuredSummary)
    assert len(result.summary) == 100


def test_prose_falls_back_to_raw_text():
    """Text without JSON becomes an unstructured summary"""
    result = parse_summary_response("  The user discussed their week.  ")
    assert isinstance(result, UnstructuredSummary)
    assert result.raw_text == "The user discussed their week."


def test_broken_json_falls_back_truncated():
    """Unparseable JSON falls back to the first max_length characters"""
    text = '{"summary": "never closed' + " word" * 200
    result = parse_summary_response(text, max_length=500)
    assert isinstance(result, UnstructuredSummary)
    assert result.raw_text == text[:500]


def test_empty_response():
    """Empty output never raises"""
    result = parse_summary_response("")
    assert isinstance(result, UnstructuredSummary)
    assert result.raw_text == DEFAULT_SUMMARY_TEXT
