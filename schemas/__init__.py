"""Pydantic schemas for the case assistant."""

from .context import (
    Intent,
    EmotionalTone,
    Urgency,
    UserRole,
    CaseStatus,
    CaseFacts,
    UserContext,
    ConversationMessage,
    ConversationContext,
)
from .knowledge import KnowledgeChunk, KnowledgeResult
from .responses import (
    IntentAnalysis,
    QuickActionPlan,
    RateLimitResult,
    ErrorInfo,
    InquiryMetadata,
    InquiryResponse,
    AgentAnalytics,
)

__all__ = [
    "Intent",
    "EmotionalTone",
    "Urgency",
    "UserRole",
    "CaseStatus",
    "CaseFacts",
    "UserContext",
    "ConversationMessage",
    "ConversationContext",
    "KnowledgeChunk",
    "KnowledgeResult",
    "IntentAnalysis",
    "QuickActionPlan",
    "RateLimitResult",
    "ErrorInfo",
    "InquiryMetadata",
    "InquiryResponse",
    "AgentAnalytics",
]
