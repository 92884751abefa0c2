"""Conversation memory: sessions, profiles and context formatting."""

from .models import ConversationTurn, Session, UserProfile, UserPreferences, InteractionRecord
from .session_store import SessionStore, ProfileStore, build_context_summary
from .session_locks import SessionLockRegistry
from .context_manager import ConversationContextManager

__all__ = [
    "ConversationTurn",
    "Session",
    "UserProfile",
    "UserPreferences",
    "InteractionRecord",
    "SessionStore",
    "ProfileStore",
    "build_context_summary",
    "SessionLockRegistry",
    "ConversationContextManager",
]
