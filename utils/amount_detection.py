"""Donation amount detection in messages and conversation history."""

import re
from typing import Iterable, Optional

MAX_DONATION_AMOUNT = 10_000_000

# Number with optional thousands separators: 500, 1000, 1.000, 1,000, 12.500,50
_NUMBER = r"\d{1,3}(?:[.,]\d{3})+(?:[.,]\d{1,2})?|\d+(?:[.,]\d{1,2})?"

AMOUNT_PATTERNS = {
    # $500, $ 1.000, US$20, R$50
    "currency": re.compile(rf"\$\s?(?:{_NUMBER})"),
    # 500 pesos, 1000 ARS, 20 usd, 50 reais
    "named_currency": re.compile(
        rf"(?:{_NUMBER})\s*(?:pesos?|ars|usd|dolares|dólares|dollars?|euros?|eur|reais|reales|brl)\b",
        re.IGNORECASE,
    ),
    # 1.000 / 2,500 written with separators
    "grouped_digits": re.compile(r"\b\d{1,3}(?:[.,]\d{3})+\b"),
    # Any number with three or more digits
    "three_or_more_digits": re.compile(r"\d{3,}"),
}

_FIRST_NUMBER = re.compile(_NUMBER)


def has_amount(text: str) -> bool:
    """
    Check if a text states a donation amount.

    Examples:
        has_amount("Quiero donar $1.000") -> True
        has_amount("1000 pesos") -> True
        has_amount("quiero donar") -> False
    """
    if not text or not isinstance(text, str):
        return False
    return any(pattern.search(text) for pattern in AMOUNT_PATTERNS.values())


def has_amount_in_history(user_messages: Iterable[str]) -> bool:
    """True if any prior user message states an amount."""
    return any(has_amount(message) for message in user_messages)


def _parse_number(raw: str) -> int:
    # "1.000" / "1,000" are thousands; a trailing 1-2 digit group is cents
    parts = re.split(r"[.,]", raw)
    if len(parts) > 1 and len(parts[-1]) <= 2:
        parts = parts[:-1]
    return int("".join(parts))


def extract_amount(text: str) -> Optional[int]:
    """
    Extract the donation amount as an integer.

    Examples:
        extract_amount("Quiero donar $1.000") -> 1000
        extract_amount("500 pesos") -> 500
        extract_amount("Quiero donar") -> None
    """
    if not text or not isinstance(text, str):
        return None

    for name in ("currency", "named_currency", "grouped_digits", "three_or_more_digits"):
        match = AMOUNT_PATTERNS[name].search(text)
        if match:
            number = _FIRST_NUMBER.search(match.group(0))
            if number:
                return _parse_number(number.group(0))
    return None


def format_amount(amount: float, currency: str = "$") -> str:
    """Format an amount with es-AR thousands separators ($1.000)."""
    if not isinstance(amount, (int, float)) or amount != amount or amount in (float("inf"), float("-inf")):
        return f"{currency}0"
    return f"{currency}{int(round(amount)):,}".replace(",", ".")


def validate_amount(amount: float) -> tuple[bool, Optional[str]]:
    """Validate that an amount is reasonable for a donation."""
    if not isinstance(amount, (int, float)) or amount != amount:
        return False, "Amount must be a valid number"
    if amount < 0:
        return False, "Amount cannot be negative"
    if amount == 0:
        return False, "Amount must be greater than zero"
    if amount > MAX_DONATION_AMOUNT:
        return False, f"Amount cannot exceed {format_amount(MAX_DONATION_AMOUNT)}"
    return True, None
