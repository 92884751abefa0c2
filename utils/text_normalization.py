"""Deterministic text normalization shared by intent resolution and governance."""

import re
import unicodedata
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Optional

import yaml
from rapidfuzz import fuzz, process

from config.settings import CONFIG_DIR

DEFAULT_KEYWORDS_PATH = CONFIG_DIR / "intent_keywords.yaml"

_REPEATED_CHARS = re.compile(r"(\w)\1{2,}")
_EDGE_PUNCTUATION = re.compile(r"^[\s¡¿!?.,;:'\"()]+|[\s¡¿!?.,;:'\"()]+$")
_WHITESPACE = re.compile(r"\s+")
_WORD = re.compile(r"[\w']+")


def strip_accents(text: str) -> str:
    """Remove diacritics (á -> a, ñ -> n)."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_text(text: str) -> str:
    """Lowercase, strip accents and collapse whitespace."""
    if not text:
        return ""
    return _WHITESPACE.sub(" ", strip_accents(text).lower()).strip()


def normalize_message(text: str) -> str:
    """
    Normalize a short user message for matching.

    On top of normalize_text, trims edge punctuation and squeezes letters
    repeated three or more times ("siiii!!" -> "si").
    """
    normalized = normalize_text(text)
    normalized = _EDGE_PUNCTUATION.sub("", normalized)
    return _REPEATED_CHARS.sub(r"\1", normalized)


def cache_key(text: str) -> str:
    """Key used by the intent cache: trimmed and lowercased text."""
    return _WHITESPACE.sub(" ", (text or "").strip().lower())


@lru_cache(maxsize=8)
def load_keyword_tables(path: Optional[str] = None) -> dict:
    """Load regex tables from YAML."""
    with open(Path(path) if path else DEFAULT_KEYWORDS_PATH, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def compile_patterns(patterns: Iterable[str]) -> list[re.Pattern]:
    """Compile a list of regex strings."""
    return [re.compile(p) for p in patterns]


def matches_any(normalized: str, patterns: Iterable[re.Pattern]) -> bool:
    """True if any compiled pattern matches the normalized text."""
    return any(p.search(normalized) for p in patterns)


class AffirmationDetector:
    """
    Recognizes short affirmations ("yes", "dale", "okk", "siii", "да").

    Messages are normalized first, then compared against the canonical
    lexicon exactly and, failing that, with rapidfuzz to absorb typos.
    This is the fast path; the intent resolver falls back to embeddings
    or translation for affirmations the lexicon does not list.
    """

    def __init__(
        self,
        affirmations: Optional[list[str]] = None,
        max_words: int = 4,
        fuzzy_threshold: float = 85.0,
    ):
        if affirmations is None:
            affirmations = load_keyword_tables().get("affirmations", [])
        self.affirmations = sorted({normalize_message(str(a)) for a in affirmations})
        self.max_words = max_words
        self.fuzzy_threshold = fuzzy_threshold

    def is_short(self, message: str) -> bool:
        """Short enough to be a bare affirmation."""
        return 0 < len(_WORD.findall(normalize_message(message))) <= self.max_words

    def is_affirmation(self, message: str) -> bool:
        words = _WORD.findall(normalize_message(message))
        if not words or len(words) > self.max_words:
            return False
        normalized = " ".join(words)

        if normalized in self.affirmations:
            return True

        # "si, dale" / "ok gracias": every leading token is affirmative
        if words[0] in self.affirmations and all(
            w in self.affirmations or w in ("gracias", "thanks", "obrigado") for w in words
        ):
            return True

        # Very short tokens ("si" vs "ni") are too ambiguous for fuzzy matching
        if len(normalized) < 3:
            return False

        match = process.extractOne(normalized, self.affirmations, scorer=fuzz.ratio)
        return bool(match and match[1] >= self.fuzzy_threshold)
