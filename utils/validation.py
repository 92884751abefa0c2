"""Boundary validation for inbound inquiries."""

import re
from typing import Any, Union

import pydantic

from schemas.context import CaseFacts, UserContext
from .errors import ValidationError

DISALLOWED_MARKUP = re.compile(
    r"<\s*/?\s*(script|iframe|object|embed|style|img|svg|a|div|span|form|input)\b|javascript:|on\w+\s*=",
    re.IGNORECASE,
)


def validate_message(message: Any, max_length: int = 2000) -> str:
    """
    Validate an inbound user message.

    Returns:
        The message with surrounding whitespace removed

    Raises:
        ValidationError: empty, too long, or containing markup
    """
    if not isinstance(message, str):
        raise ValidationError("Message must be a string", {"type": type(message).__name__})

    cleaned = message.strip()
    if not cleaned:
        raise ValidationError("Message is empty")

    if len(cleaned) > max_length:
        raise ValidationError(
            "Message is too long",
            {"length": len(cleaned), "max_length": max_length},
        )

    if DISALLOWED_MARKUP.search(cleaned):
        raise ValidationError("Message contains disallowed markup")

    return cleaned


def parse_case_facts(data: Union[CaseFacts, dict]) -> CaseFacts:
    """Parse raw case facts, rejecting malformed payloads."""
    if isinstance(data, CaseFacts):
        return data
    try:
        return CaseFacts.model_validate(data)
    except pydantic.ValidationError as e:
        raise ValidationError(
            "Invalid case facts",
            {"fields": [".".join(str(p) for p in err["loc"]) for err in e.errors()]},
        ) from e


def parse_user_context(data: Union[UserContext, dict]) -> UserContext:
    """Parse raw user context, rejecting malformed payloads."""
    if isinstance(data, UserContext):
        return data
    try:
        return UserContext.model_validate(data)
    except pydantic.ValidationError as e:
        raise ValidationError(
            "Invalid user context",
            {"fields": [".".join(str(p) for p in err["loc"]) for err in e.errors()]},
        ) from e
