"""System prompt generation for the companion persona"""

import random
from datetime import datetime
from typing import Optional, List, Literal

SessionType = Literal["chat", "journal", "voice"]
TimeOfDay = Literal["morning", "afternoon", "evening", "night"]


BASE_PROMPT = """You are MindScribe, a compassionate AI companion for emotional well-being. Offer support, listen actively and suggest evidence-based coping strategies.

## Core Guidelines:
- Be warm, empathetic and non-judgmental
- Reflect feelings and validate emotions before offering solutions
- Ask open-ended questions to encourage expression
- Never diagnose or replace professional help
- Encourage professional support when crisis signals appear

## Communication Style:
- Keep the tone conversational, not clinical
- Avoid toxic positivity
- Use gentle, supportive language"""

SESSION_GUIDELINES = {
    "chat": """

## Chat Session Guidelines:
- Keep responses concise but warm (2-4 paragraphs max)
- Mix emotional support with practical suggestions
- End with an open question or gentle prompt""",
    "journal": """

## Journal Reflection Guidelines:
- Help the user explore and process what they wrote
- Ask reflective questions about patterns or feelings
- Suggest journaling prompts when appropriate""",
    "voice": """

## Voice Session Guidelines:
- Keep responses short for spoken delivery
- Use a warm, conversational tone
- Speak directly and compassionately""",
}

CRISIS_PROTOCOL = """

## Crisis Protocol:
If the user expresses thoughts of self-harm or suicide:
1. Express genuine care and take them seriously
2. Gently suggest contacting a crisis counselor, available 24/7 at 988 (Suicide & Crisis Lifeline)
3. Stay with them in the conversation
4. Remind them that help is available"""

CRISIS_RESPONSE_ADDITION = """

IMPORTANT: The user's latest message may contain crisis signals. Respond with extra care:
1. Acknowledge their pain directly
2. Say you are glad they shared this
3. Mention crisis resources (988 Lifeline)
4. Remind them they are not alone
5. Ask whether they are safe right now"""

CRISIS_KEYWORDS = [
    "suicide", "kill myself", "end it all", "not worth living",
    "self-harm", "hurt myself", "cutting", "overdose",
    "no point", "better off dead", "disappear forever",
]

GREETINGS = {
    "morning": ["Good morning", "Morning"],
    "afternoon": ["Good afternoon", "Hello"],
    "evening": ["Good evening", "Hey there"],
    "night": ["Hi there", "Hello"],
}


class SystemPromptBuilder:
    """Build persona system prompts and detect crisis signals"""

    def __init__(self, crisis_keywords: Optional[List[str]] = None):
        self.crisis_keywords = crisis_keywords or CRISIS_KEYWORDS

    def generate_system_prompt(
        self,
        user_name: Optional[str] = None,
        session_type: SessionType = "chat",
        time_of_day: Optional[TimeOfDay] = None,
    ) -> str:
        prompt = BASE_PROMPT

        if user_name or time_of_day:
            prompt += "\n\n## User Context:"
            if user_name:
                prompt += f"\n- User's name: {user_name}"
            if time_of_day:
                prompt += f"\n- Time of day: {time_of_day}"

        prompt += SESSION_GUIDELINES.get(session_type, SESSION_GUIDELINES["chat"])
        prompt += CRISIS_PROTOCOL
        return prompt

    def contains_crisis_signals(self, message: str) -> bool:
        lowered = message.lower()
        return any(keyword in lowered for keyword in self.crisis_keywords)

    @staticmethod
    def crisis_response_addition() -> str:
        return CRISIS_RESPONSE_ADDITION

    @staticmethod
    def get_time_of_day(now: Optional[datetime] = None) -> TimeOfDay:
        hour = (now or datetime.now()).hour
        if 5 <= hour < 12:
            return "morning"
        if 12 <= hour < 17:
            return "afternoon"
        if 17 <= hour < 21:
            return "evening"
        return "night"

    def generate_greeting(
        self,
        user_name: Optional[str] = None,
        time_of_day: Optional[TimeOfDay] = None,
    ) -> str:
        time_of_day = time_of_day or self.get_time_of_day()
        greeting = random.choice(GREETINGS[time_of_day])
        name = f", {user_name}" if user_name else ""
        return f"{greeting}{name}! I'm here to listen and support you. How can I help you today?"
