"""Memory data models."""

from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field

from schemas.context import Intent


class ConversationTurn(BaseModel):
    """A single turn in a conversation."""
    role: str  # "user" or "assistant"
    content: str
    timestamp: datetime = Field(default_factory=datetime.now)
    intent: Optional[Intent] = None  # Set on user turns once resolved


class UserPreferences(BaseModel):
    """Communication preferences remembered per user."""
    language: str = "es"
    communication_style: str = "empathetic"
    preferred_actions: List[str] = Field(default_factory=list)


class Session(BaseModel):
    """Per-conversation memory."""
    conversation_id: str
    user_id: Optional[str] = None
    case_id: Optional[str] = None
    turns: List[ConversationTurn] = Field(default_factory=list)
    context_summary: str = ""
    amount_stated: bool = False  # Sticky; survives turn trimming
    created_at: datetime = Field(default_factory=datetime.now)
    last_interaction: datetime = Field(default_factory=datetime.now)

    def user_messages(self) -> List[str]:
        return [t.content for t in self.turns if t.role == "user"]

    def last_turn(self, role: str) -> Optional[ConversationTurn]:
        for turn in reversed(self.turns):
            if turn.role == role:
                return turn
        return None

    @property
    def has_history(self) -> bool:
        return bool(self.turns)


class InteractionRecord(BaseModel):
    """One resolved inquiry in a user's history."""
    case_id: Optional[str] = None
    intent: Intent = Intent.GENERAL
    actions: List[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=datetime.now)


class UserProfile(BaseModel):
    """Long-lived per-user profile."""
    user_id: str
    engagement_level: str = "low"  # "low", "medium" or "high"
    interaction_history: List[InteractionRecord] = Field(default_factory=list)
    preferences: UserPreferences = Field(default_factory=UserPreferences)
    created_at: datetime = Field(default_factory=datetime.now)
    last_active: datetime = Field(default_factory=datetime.now)
