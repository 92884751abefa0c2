"""Tests for donation amount detection."""

import pytest
from utils.amount_detection import (
    MAX_DONATION_AMOUNT,
    extract_amount,
    format_amount,
    has_amount,
    has_amount_in_history,
    validate_amount,
)


class TestHasAmount:
    """Amount detection across formats."""

    def test_separator_variants_are_equivalent(self):
        assert has_amount("$1.000") == has_amount("$1,000") == has_amount("1000 pesos") is True

    def test_amount_formats(self):
        for text in ["$500", "$ 2.500", "Quiero donar 1500", "20 usd", "50 reais", "US$20", "R$50"]:
            assert has_amount(text), text

    def test_no_amount(self):
        for text in ["quiero donar", "Dale", "I have 2 cats", "", None]:
            assert has_amount(text) is False, text

    def test_history(self):
        assert has_amount_in_history(["Hola", "Quiero donar $500"])
        assert not has_amount_in_history(["Hola", "Quiero donar"])
        assert not has_amount_in_history([])


class TestExtractAmount:
    """Numeric extraction."""

    def test_thousands_separators(self):
        assert extract_amount("Quiero donar $1.000") == 1000
        assert extract_amount("$1,000") == 1000
        assert extract_amount("$12.500,50") == 12500

    def test_named_currency(self):
        assert extract_amount("500 pesos") == 500

    def test_plain_digits(self):
        assert extract_amount("te mando 2500") == 2500

    def test_no_amount(self):
        assert extract_amount("Quiero donar") is None
        assert extract_amount("") is None


class TestFormatAndValidate:
    """Formatting and validation helpers."""

    def test_format_amount(self):
        assert format_amount(1000) == "$1.000"
        assert format_amount(1234567) == "$1.234.567"
        assert format_amount(500) == "$500"
        assert format_amount(float("nan")) == "$0"

    @pytest.mark.parametrize("amount", [1, 500, MAX_DONATION_AMOUNT])
    def test_valid_amounts(self, amount):
        assert validate_amount(amount) == (True, None)

    @pytest.mark.parametrize("amount", [0, -5, MAX_DONATION_AMOUNT + 1, float("nan")])
    def test_invalid_amounts(self, amount):
        valid, reason = validate_amount(amount)
        assert valid is False
        assert reason
