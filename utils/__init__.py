"""Shared utilities: text handling, amounts, caching, rate limiting, errors."""

from .amount_detection import has_amount, has_amount_in_history, extract_amount, format_amount, validate_amount
from .errors import (
    ErrorCategory,
    AppError,
    ValidationError,
    RateLimitExceeded,
    UpstreamUnavailable,
    GenerationFailed,
)
from .rate_limiter import RateLimiter, RateLimitService
from .ttl_cache import TTLCache

__all__ = [
    "has_amount",
    "has_amount_in_history",
    "extract_amount",
    "format_amount",
    "validate_amount",
    "ErrorCategory",
    "AppError",
    "ValidationError",
    "RateLimitExceeded",
    "UpstreamUnavailable",
    "GenerationFailed",
    "RateLimiter",
    "RateLimitService",
    "TTLCache",
]
