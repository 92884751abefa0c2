"""Response Governor: deterministic enforcement of conversation rules on generated text."""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from schemas.context import Intent
from utils.messages import MessageCatalog, get_message_catalog
from utils.text_normalization import compile_patterns, load_keyword_tables, matches_any, normalize_text

logger = logging.getLogger(__name__)

HELP_SEEKING_HINT = "help_seeking"
MAX_HELP_SENTENCES = 3

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?…])\s+")
_CLAUSE_SPLIT = re.compile(r"\s*[,;:]\s+|\s+[-–]\s+")
_LINK = re.compile(r"\[([^\]]+)\]\([^)]+\)")
_EMPHASIS = re.compile(r"(\*\*|__|\*|~~|`)(?=\S)(.+?)(?<=\S)\1")
_STRAY_MARKERS = re.compile(r"\*+|`+")
_LIST_MARKER = re.compile(r"^\s*(?:[-*+•]|\d+[.)])\s+")
_HEADING = re.compile(r"^\s*#{1,6}\s*")
_BLOCKQUOTE = re.compile(r"^\s*>\s?")
_WHITESPACE = re.compile(r"\s+")
_TERMINAL = (".", "!", "?", "…")


@dataclass(frozen=True)
class GovernanceStage:
    """Conversation-stage flags that decide which rules apply."""
    amount_stated: bool = False
    alias_shown: bool = False
    user_requested_restricted: bool = False
    language: str = "es"
    case_terms: tuple[str, ...] = ()
    alias_terms: tuple[str, ...] = ()


def strip_markdown(text: str) -> str:
    """Turn markdown into plain sentences; list items and headings become sentences."""
    lines = []
    for raw in (text or "").splitlines():
        line = _BLOCKQUOTE.sub("", raw)
        is_item = bool(_LIST_MARKER.match(line) or _HEADING.match(line))
        line = _HEADING.sub("", _LIST_MARKER.sub("", line))
        line = _LINK.sub(r"\1", line)
        line = _EMPHASIS.sub(r"\2", line)
        line = _STRAY_MARKERS.sub("", line).strip()
        if not line:
            continue
        if is_item and not line.endswith(_TERMINAL + (":",)):
            line += "."
        if line.endswith(":"):
            line = line[:-1] + "."
        lines.append(line)
    return " ".join(lines)


def split_sentences(text: str) -> list[str]:
    return [s.strip() for s in _SENTENCE_SPLIT.split(text) if s.strip()]


def finalize(text: str) -> str:
    """Collapse whitespace and make sure the text ends like a sentence."""
    text = _WHITESPACE.sub(" ", text).strip()
    if text and not text.endswith(_TERMINAL):
        text += "."
    return text


class ResponseGovernor:
    """
    Rewrites a draft reply so it obeys the conversation rules.

    Pure function of (draft, intent, stage, hints): no external calls, no
    randomness. Rules, in order: markdown removal, help-seeking limits,
    donation-flow disclosure, acknowledgment de-duplication, final
    whitespace and punctuation.
    """

    def __init__(self, messages: Optional[MessageCatalog] = None, keywords_path: Optional[str] = None):
        self.messages = messages or get_message_catalog()
        patterns = load_keyword_tables(keywords_path).get("patterns", {})
        self.alias_patterns = compile_patterns(patterns.get("alias_mention", []))
        self.amount_prompt_patterns = compile_patterns(patterns.get("amount_prompt", []))
        self.verification_patterns = compile_patterns(patterns.get("verification_followup", []))
        self.acknowledgment_patterns = compile_patterns(patterns.get("acknowledgment", []))
        self.restricted_patterns = compile_patterns(patterns.get("help_restricted", []))

    def govern(
        self,
        draft: str,
        intent: Intent,
        stage: GovernanceStage,
        hints: Iterable[str] = (),
    ) -> str:
        """
        Apply every rule to a draft.

        Args:
            draft: Generated text
            intent: Resolved intent of the user's message
            stage: Flags derived from the session and the action plan
            hints: Rule tags attached to retrieved knowledge chunks

        Returns:
            Governed plain text
        """
        hints = {h.lower() for h in hints}
        sentences = split_sentences(strip_markdown(draft))

        help_seeking = intent == Intent.HELP or HELP_SEEKING_HINT in hints
        if help_seeking:
            sentences = self._apply_help_rules(sentences, stage)
        if intent == Intent.DONATE:
            sentences = self._apply_donation_rules(sentences, stage)

        sentences = self._dedupe_acknowledgments(sentences)

        if help_seeking and len(sentences) > MAX_HELP_SENTENCES:
            # The donation rules end on the amount prompt or the verification follow-up
            if intent == Intent.DONATE:
                sentences = sentences[:MAX_HELP_SENTENCES - 1] + sentences[-1:]
            else:
                sentences = sentences[:MAX_HELP_SENTENCES]
        return finalize(" ".join(sentences))

    # ----- help-seeking -----

    def _apply_help_rules(self, sentences: list[str], stage: GovernanceStage) -> list[str]:
        fact_patterns = [
            re.compile(rf"\b{re.escape(normalize_text(term))}\b")
            for term in stage.case_terms
            if normalize_text(term)
        ]

        kept = []
        for sentence in sentences:
            normalized = normalize_text(sentence)
            if any(p.search(normalized) for p in fact_patterns):
                continue
            if not stage.user_requested_restricted and matches_any(normalized, self.restricted_patterns):
                continue
            kept.append(sentence)

        if not kept:
            logger.debug("Help reply emptied by filters, using fallback")
            return split_sentences(self.messages.get("help_fallback", stage.language))
        return kept[:MAX_HELP_SENTENCES]

    # ----- donation flow -----

    def _is_amount_prompt(self, sentence: str) -> bool:
        return sentence.endswith("?") and matches_any(normalize_text(sentence), self.amount_prompt_patterns)

    def _mentions_alias(self, sentence: str, stage: GovernanceStage) -> bool:
        normalized = normalize_text(sentence)
        if matches_any(normalized, self.alias_patterns):
            return True
        return any(term and normalize_text(term) in normalized for term in stage.alias_terms)

    def _apply_donation_rules(self, sentences: list[str], stage: GovernanceStage) -> list[str]:
        if not stage.amount_stated:
            # No payment details before the user says how much
            body = [
                s for s in sentences
                if not self._mentions_alias(s, stage) and not self._is_amount_prompt(s)
            ]
            prompts = [s for s in sentences if self._is_amount_prompt(s) and not self._mentions_alias(s, stage)]
            prompt = prompts[0] if prompts else self.messages.get("amount_prompt", stage.language)
            return body + [prompt]

        body = [s for s in sentences if not self._is_amount_prompt(s)]
        if not stage.alias_shown:
            return body

        # Verification follow-up goes once, after the alias content
        kept = []
        for sentence in body:
            if not self._asks_verification(sentence):
                kept.append(sentence)
            elif self._mentions_alias(sentence, stage):
                kept.append(self._drop_verification_clauses(sentence, stage))
        return kept + [self.messages.get("verification_followup", stage.language)]

    def _asks_verification(self, text: str) -> bool:
        return matches_any(normalize_text(text), self.verification_patterns)

    def _drop_verification_clauses(self, sentence: str, stage: GovernanceStage) -> str:
        """Cut receipt requests out of a sentence that also carries the alias."""
        clauses = _CLAUSE_SPLIT.split(sentence.rstrip("".join(_TERMINAL)))
        kept = [
            c for c in clauses
            if not self._asks_verification(c) or self._mentions_alias(c, stage)
        ]
        return finalize(", ".join(kept))

    # ----- acknowledgments -----

    def _dedupe_acknowledgments(self, sentences: list[str]) -> list[str]:
        seen = False
        kept = []
        for sentence in sentences:
            normalized = normalize_text(sentence).lstrip("¡!¿ ")
            if matches_any(normalized, self.acknowledgment_patterns):
                if seen:
                    continue
                seen = True
            kept.append(sentence)
        return kept
