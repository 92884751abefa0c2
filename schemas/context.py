"""Context and case metadata schemas."""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator


class Intent(str, Enum):
    """Classified purpose of a user message."""
    DONATE = "donate"
    SHARE = "share"
    ADOPT = "adopt"
    CONTACT = "contact"
    HELP = "help"
    GENERAL = "general"


class EmotionalTone(str, Enum):
    """Lightweight emotional reading of a message."""
    NEUTRAL = "neutral"
    EXCITED = "excited"
    CONCERNED = "concerned"
    SAD = "sad"
    ANGRY = "angry"
    HOPEFUL = "hopeful"


class Urgency(str, Enum):
    """Urgency signalled by the user."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class UserRole(str, Enum):
    """Role of the person talking to the assistant."""
    USER = "user"
    GUARDIAN = "guardian"
    ADMIN = "admin"
    INVESTOR = "investor"
    LEAD_INVESTOR = "lead_investor"
    PARTNER = "partner"


class CaseStatus(str, Enum):
    """Lifecycle status of a rescue case."""
    ACTIVE = "active"
    URGENT = "urgent"
    COMPLETED = "completed"
    PAUSED = "paused"


class CaseFacts(BaseModel):
    """Read-only case facts supplied by the case owner."""
    case_id: str = Field(min_length=1)
    name: str = Field(min_length=1, description="Animal name")
    guardian_id: Optional[str] = None
    guardian_name: Optional[str] = None
    guardian_alias: Optional[str] = Field(None, description="Guardian bank-transfer alias")
    status: CaseStatus = CaseStatus.ACTIVE
    species: Optional[str] = None
    location: Optional[str] = None
    condition: Optional[str] = None
    description: Optional[str] = None
    target_amount: Optional[float] = Field(None, ge=0)
    current_amount: Optional[float] = Field(None, ge=0)
    social_links: dict[str, str] = Field(default_factory=dict)

    @property
    def has_guardian_alias(self) -> bool:
        return bool(self.guardian_alias and self.guardian_alias.strip())

    @property
    def has_guardian_id(self) -> bool:
        return bool(self.guardian_id and self.guardian_id.strip() and self.guardian_id != "unknown")

    @property
    def has_social_links(self) -> bool:
        return any(url for url in self.social_links.values())

    def fact_terms(self) -> list[str]:
        """Case facts that must not be repeated back in help-seeking replies."""
        terms = [self.name, self.species, self.location, self.condition]
        return [t.strip() for t in terms if t and len(t.strip()) > 2]


class UserContext(BaseModel):
    """Who is asking and in which language they expect answers."""
    user_id: str = Field(min_length=1)
    user_role: UserRole = UserRole.USER
    language: str = "es"
    location: Optional[str] = None

    @field_validator("language")
    @classmethod
    def _normalize_language(cls, value: str) -> str:
        return value.strip().lower()[:2] or "es"


class ConversationMessage(BaseModel):
    """A message carried over from the hosting transport."""
    role: str  # "user", "assistant" or "system"
    content: str
    timestamp: datetime = Field(default_factory=datetime.now)


class ConversationContext(BaseModel):
    """Transport-provided conversation context."""
    conversation_id: Optional[str] = None
    platform: str = "web"
    history: list[ConversationMessage] = Field(default_factory=list)
