"""Conversation context formatting for the LLM context window."""

import logging
from typing import List

from llm.base_client import Message
from .models import Session, UserProfile

logger = logging.getLogger(__name__)


class ConversationContextManager:
    """Builds the conversation portion of a prompt from session memory."""

    MAX_CONTEXT_TURNS = 6  # Most recent turns sent to the generator

    def __init__(self, assistant_name: str = "Toto"):
        self.assistant_name = assistant_name

    def get_context_messages(self, session: Session) -> List[Message]:
        """
        Get messages for the LLM context window.

        Args:
            session: Conversation session

        Returns:
            Recent turns as Message objects
        """
        return [
            Message(role=turn.role, content=turn.content)
            for turn in session.turns[-self.MAX_CONTEXT_TURNS:]
        ]

    def get_conversation_context_string(self, session: Session) -> str:
        """
        Get conversation context as a single string.

        Useful for including in system prompts.
        """
        messages = self.get_context_messages(session)
        if not messages:
            return ""

        parts = ["Conversation History:"]
        for msg in messages:
            speaker = "User" if msg.role == "user" else self.assistant_name
            parts.append(f"{speaker}: {msg.content}")
        return "\n".join(parts)

    def get_user_context_string(self, profile: UserProfile) -> str:
        recent_actions = " | ".join(
            ", ".join(record.actions) for record in profile.interaction_history[-3:] if record.actions
        )
        return "\n".join([
            "User Profile:",
            f"- Engagement Level: {profile.engagement_level}",
            f"- Preferred Language: {profile.preferences.language}",
            f"- Communication Style: {profile.preferences.communication_style}",
            f"- Recent Actions: {recent_actions or 'None'}",
        ])
