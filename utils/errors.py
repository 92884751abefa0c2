"""Application error taxonomy."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from .messages import get_message_catalog


class ErrorCategory(str, Enum):
    """Error categories, each with its own handling strategy."""
    VALIDATION = "validation"
    RATE_LIMIT = "rate_limit"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    GENERATION_FAILED = "generation_failed"
    INTERNAL = "internal"


class AppError(Exception):
    """Base application error with a category and a localized user message."""

    category = ErrorCategory.INTERNAL
    retryable = False

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.timestamp = datetime.now()

    def user_message(self, language: str = "es") -> str:
        """User-facing text; never includes internal diagnostics."""
        return get_message_catalog().get(f"errors.{self.category.value}", language)

    def to_dict(self) -> dict[str, Any]:
        """Structured form for logging."""
        return {
            "name": type(self).__name__,
            "message": str(self),
            "category": self.category.value,
            "retryable": self.retryable,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }


class ValidationError(AppError):
    """Malformed input. Rejected before the pipeline and never retried."""

    category = ErrorCategory.VALIDATION


class RateLimitExceeded(AppError):
    """Request rejected by admission control."""

    category = ErrorCategory.RATE_LIMIT
    retryable = True

    def __init__(self, key: str, limit: int, retry_after_ms: int):
        super().__init__(
            f"Rate limit exceeded for {key}: {limit} requests per window",
            {"key": key, "limit": limit, "retry_after_ms": retry_after_ms},
        )
        self.key = key
        self.limit = limit
        self.retry_after_ms = retry_after_ms


class UpstreamUnavailable(AppError):
    """An external service (embeddings, knowledge, generation) failed or timed out."""

    category = ErrorCategory.UPSTREAM_UNAVAILABLE
    retryable = True

    def __init__(self, service: str, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(f"{service}: {message}", {**(context or {}), "service": service})
        self.service = service


class GenerationFailed(UpstreamUnavailable):
    """The language completion step failed; the turn cannot be answered."""

    category = ErrorCategory.GENERATION_FAILED

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__("generation", message, context)
