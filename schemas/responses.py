"""Pipeline output schemas."""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from .context import Intent, EmotionalTone, Urgency


class IntentAnalysis(BaseModel):
    """Result of intent resolution. Immutable once produced."""
    model_config = ConfigDict(frozen=True)

    intent: Intent = Intent.GENERAL
    confidence: float = Field(0.1, ge=0.0, le=1.0)
    suggested_actions: tuple[str, ...] = ()
    emotional_tone: EmotionalTone = EmotionalTone.NEUTRAL
    urgency: Urgency = Urgency.LOW
    source: str = "fallback"  # "context", "embedding", "keyword", "fallback"


class QuickActionPlan(BaseModel):
    """Structured UI affordances disclosed to the user this turn."""
    show_amount_prompt: bool = False
    show_primary_alias: bool = False
    show_alternate_alias: bool = False
    show_social_links: bool = False
    show_guardian_contact: bool = False
    suggested_amounts: Optional[list[int]] = None

    @property
    def shows_alias(self) -> bool:
        return self.show_primary_alias or self.show_alternate_alias


class RateLimitResult(BaseModel):
    """Outcome of a rate limit check."""
    allowed: bool
    remaining: int
    limit: int
    reset_at: float  # clock seconds
    retry_after_ms: int = 0


class ErrorInfo(BaseModel):
    """Categorized failure detail. Never carries internal diagnostics."""
    category: str
    retryable: bool = False
    retry_after_ms: Optional[int] = None


class InquiryMetadata(BaseModel):
    """Metadata returned with every inquiry response."""
    intent: Intent = Intent.GENERAL
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    processing_time_ms: int = 0
    conversation_id: Optional[str] = None
    emotional_tone: Optional[EmotionalTone] = None
    urgency: Optional[Urgency] = None
    engagement_level: Optional[str] = None


class InquiryResponse(BaseModel):
    """Public response of the case assistant."""
    success: bool
    message: str
    actions: QuickActionPlan = Field(default_factory=QuickActionPlan)
    metadata: InquiryMetadata = Field(default_factory=InquiryMetadata)
    error: Optional[ErrorInfo] = None


class AgentAnalytics(BaseModel):
    """Aggregated runtime statistics of the orchestrator."""
    total_interactions: int = 0
    successful_interactions: int = 0
    average_processing_time_ms: float = 0.0
    total_sessions: int = 0
    total_users: int = 0
    engagement_distribution: dict[str, int] = Field(
        default_factory=lambda: {"low": 0, "medium": 0, "high": 0}
    )
    top_actions: list[tuple[str, int]] = Field(default_factory=list)
