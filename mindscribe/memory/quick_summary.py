"""Keyword-based summary used when no model is available"""

from typing import Dict, List

from mindscribe.models.conversation import ChatMessage


MAX_TOPICS = 5
MAX_EMOTIONS = 4

TOPIC_KEYWORDS = [
    "work", "job", "career", "boss", "colleague",
    "family", "parent", "child", "partner", "friend",
    "anxiety", "stress", "depression", "worry", "fear",
    "sleep", "health", "exercise", "diet",
    "relationship", "love", "breakup", "marriage",
    "school", "study", "exam", "college",
    "money", "finance", "debt", "budget",
    "future", "goal", "dream", "plan",
]

# keyword -> emotional theme
EMOTION_KEYWORDS: Dict[str, str] = {
    "happy": "happiness", "glad": "happiness", "joy": "happiness",
    "sad": "sadness", "unhappy": "sadness", "depressed": "sadness",
    "anxious": "anxiety", "worried": "anxiety", "nervous": "anxiety",
    "angry": "anger", "frustrated": "frustration", "annoyed": "frustration",
    "scared": "fear", "afraid": "fear", "terrified": "fear",
    "hopeful": "hope", "optimistic": "hope", "better": "hope",
    "tired": "exhaustion", "exhausted": "exhaustion", "drained": "exhaustion",
    "lonely": "loneliness", "alone": "loneliness", "isolated": "loneliness",
    "overwhelmed": "overwhelm", "stressed": "stress", "pressure": "stress",
}


def _user_text(messages: List[ChatMessage]) -> str:
    return " ".join(msg.content.lower() for msg in messages if msg.role == "user")


def extract_topics(messages: List[ChatMessage]) -> List[str]:
    """Topic keywords mentioned in user messages (keyword-list order)"""
    text = _user_text(messages)
    topics = [keyword for keyword in TOPIC_KEYWORDS if keyword in text]
    return topics[:MAX_TOPICS]


def extract_emotions(messages: List[ChatMessage]) -> List[str]:
    """Emotional themes mentioned in user messages, deduplicated"""
    text = _user_text(messages)
    emotions: List[str] = []
    for keyword, emotion in EMOTION_KEYWORDS.items():
        if keyword in text and emotion not in emotions:
            emotions.append(emotion)
    return emotions[:MAX_EMOTIONS]


def compose_summary(message_count: int, topics: List[str]) -> str:
    discussed = ", ".join(topics[:3]) or "various topics"
    return f"Previous conversation with {message_count} messages. User discussed: {discussed}."
