"""Intent Resolver: multilingual intent classification with graceful fallback."""

import asyncio
import logging
from typing import Optional

import numpy as np
import yaml

from config.settings import Settings
from llm.base_client import BaseLLMClient
from memory.models import Session, UserProfile
from retrieval.embeddings_manager import EmbeddingsManager, cosine_similarity
from schemas.context import EmotionalTone, Intent, Urgency
from schemas.responses import IntentAnalysis
from utils.amount_detection import has_amount
from utils.text_normalization import (
    AffirmationDetector,
    cache_key,
    compile_patterns,
    load_keyword_tables,
    matches_any,
    normalize_text,
)
from utils.ttl_cache import TTLCache

logger = logging.getLogger(__name__)

SUGGESTED_ACTIONS = {
    Intent.DONATE: ("donate", "share"),
    Intent.ADOPT: ("adopt", "contact", "learn"),
    Intent.SHARE: ("share", "donate"),
    Intent.CONTACT: ("contact", "learn"),
    Intent.HELP: ("donate", "share", "adopt", "contact"),
    Intent.GENERAL: ("donate", "share", "adopt"),
}

# Affirmation carry-over checks topics in this order
TOPIC_PRECEDENCE = (Intent.DONATE, Intent.SHARE, Intent.ADOPT, Intent.HELP)

KEYWORD_CONFIDENCE = 0.8
PREVIOUS_TURN_CONFIDENCE = 0.9
NO_MATCH_CONFIDENCE = 0.2
ERROR_CONFIDENCE = 0.1

TRANSLATION_PROMPT = (
    "Translate the following message to English. "
    "Reply with the translation only, no quotes or explanations.\n\n{message}"
)


# Example cluster for short agreement, kept alongside the intent clusters
AFFIRMATION_CLUSTER = "affirmation"


def _read_examples(path: str) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_intent_examples(path: str) -> dict[Intent, list[str]]:
    """Canonical example phrases per intent."""
    return {
        Intent(name): [str(p) for p in phrases]
        for name, phrases in _read_examples(path).items()
        if name != AFFIRMATION_CLUSTER and phrases
    }


def load_affirmation_examples(path: str) -> list[str]:
    return [str(p) for p in _read_examples(path).get(AFFIRMATION_CLUSTER) or []]


class IntentResolver:
    """
    Resolves the intent of a user message.

    Order of evaluation:
    1. Affirmation carry-over from the previous turns of the session. A
       message is an affirmation if it is in the lexicon, or if it is
       closest to the affirmation example cluster, or (keyword-only mode)
       if its English translation is in the lexicon
    2. Semantic similarity against per-intent example clusters
    3. Keyword patterns on normalized text
    4. Optional LLM translation to English, then keywords again

    Emotional tone and urgency are computed independently. The resolver
    never raises; on unexpected errors it returns `general` with
    confidence 0.1.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        embeddings: Optional[EmbeddingsManager] = None,
        translator: Optional[BaseLLMClient] = None,
        examples: Optional[dict[Intent, list[str]]] = None,
        cache: Optional[TTLCache] = None,
        affirmation_examples: Optional[list[str]] = None,
    ):
        """
        Initialize the resolver.

        Args:
            settings: Engine settings (thresholds, timeouts, data paths)
            embeddings: Cached embeddings manager; None runs keyword-only
            translator: Optional LLM used as last-resort translator in keyword-only mode
            examples: Override of the intent example phrases
            cache: Override of the result cache
            affirmation_examples: Override of the affirmation example phrases
        """
        self.settings = settings or Settings()
        self.embeddings = embeddings
        self.translator = translator
        self.examples = examples or load_intent_examples(self.settings.intent_examples_path)
        if affirmation_examples is None:
            affirmation_examples = load_affirmation_examples(self.settings.intent_examples_path)
        self.affirmation_examples = affirmation_examples
        self.cache = cache or TTLCache(
            self.settings.intent_cache_max_entries,
            self.settings.intent_cache_ttl_seconds,
        )
        self._translations: TTLCache[str] = TTLCache(
            self.settings.intent_cache_max_entries,
            self.settings.intent_cache_ttl_seconds,
        )

        tables = load_keyword_tables(self.settings.intent_keywords_path)
        self.intent_patterns = {
            Intent(name): compile_patterns(patterns)
            for name, patterns in tables.get("intents", {}).items()
        }
        self.topic_patterns = {
            Intent(name): compile_patterns(patterns)
            for name, patterns in tables.get("topics", {}).items()
        }
        self.emotion_patterns = {
            EmotionalTone(name): compile_patterns(patterns)
            for name, patterns in tables.get("emotions", {}).items()
        }
        self.urgency_patterns = {
            Urgency(name): compile_patterns(patterns)
            for name, patterns in tables.get("urgency", {}).items()
        }
        self.affirmations = AffirmationDetector(
            tables.get("affirmations"),
            max_words=self.settings.max_affirmation_words,
            fuzzy_threshold=self.settings.affirmation_fuzzy_threshold,
        )

        self._clusters: Optional[dict[Intent, list[np.ndarray]]] = None
        self._affirmation_vectors: list[np.ndarray] = []
        self._warm_lock = asyncio.Lock()

    # ----- public API -----

    async def resolve_intent(
        self,
        message: str,
        session: Optional[Session] = None,
        profile: Optional[UserProfile] = None,
    ) -> IntentAnalysis:
        """
        Classify a message in the context of its session.

        Args:
            message: Raw user message
            session: Conversation session (for affirmation carry-over)
            profile: User profile (currently informational only)

        Returns:
            IntentAnalysis; never raises
        """
        try:
            return await self._resolve(message, session)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Intent resolution failed, defaulting to general: {e}", exc_info=True)
            return IntentAnalysis(
                intent=Intent.GENERAL,
                confidence=ERROR_CONFIDENCE,
                suggested_actions=SUGGESTED_ACTIONS[Intent.GENERAL],
                source="fallback",
            )

    async def warm_up(self) -> bool:
        """
        Embed all example phrases so classification needs one call per message.

        Returns:
            True if example clusters are ready
        """
        if self._clusters is not None:
            return True
        if not self.embeddings:
            return False

        async with self._warm_lock:
            if self._clusters is not None:
                return True

            intents = list(self.examples.keys())
            phrases = [p for intent in intents for p in self.examples[intent]]
            try:
                vectors = await asyncio.wait_for(
                    asyncio.to_thread(self.embeddings.embed_texts, phrases),
                    timeout=self.settings.embedding_timeout_seconds * 4,
                )
                affirmation_vectors = []
                if self.affirmation_examples:
                    affirmation_vectors = await asyncio.wait_for(
                        asyncio.to_thread(self.embeddings.embed_texts, self.affirmation_examples),
                        timeout=self.settings.embedding_timeout_seconds * 4,
                    )
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Could not embed intent examples, using keywords for now: {e!r}")
                return False

            clusters: dict[Intent, list[np.ndarray]] = {}
            offset = 0
            for intent in intents:
                count = len(self.examples[intent])
                clusters[intent] = vectors[offset:offset + count]
                offset += count

            self._affirmation_vectors = list(affirmation_vectors)
            self._clusters = clusters
            logger.info(
                f"Intent example clusters ready: {len(phrases)} phrases across {len(intents)} intents, "
                f"{len(self._affirmation_vectors)} affirmation examples"
            )
            return True

    # ----- pipeline -----

    async def _resolve(self, message: str, session: Optional[Session]) -> IntentAnalysis:
        normalized = normalize_text(message)

        carried = await self._carry_over(message, normalized, session)
        if carried:
            intent, confidence = carried
            return self._analysis(intent, confidence, message, normalized, "context")

        key = cache_key(message)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        intent, confidence, source = None, 0.0, "keyword"

        semantic = await self._classify_semantic(message)
        if semantic:
            intent, confidence = semantic
            source = "embedding"

        if intent is None:
            intent = self._classify_keywords(normalized)
            if intent is not None:
                confidence = KEYWORD_CONFIDENCE

        if intent is None and self.embeddings is None and self.translator is not None:
            intent = await self._classify_translated(message)
            if intent is not None:
                confidence, source = KEYWORD_CONFIDENCE, "translation"

        if intent is None:
            intent, confidence, source = Intent.GENERAL, NO_MATCH_CONFIDENCE, "fallback"

        analysis = self._analysis(intent, confidence, message, normalized, source)
        self.cache.set(key, analysis)
        return analysis

    def _analysis(
        self,
        intent: Intent,
        confidence: float,
        message: str,
        normalized: str,
        source: str,
    ) -> IntentAnalysis:
        return IntentAnalysis(
            intent=intent,
            confidence=round(min(max(confidence, 0.0), 1.0), 4),
            suggested_actions=SUGGESTED_ACTIONS[intent],
            emotional_tone=self.detect_emotional_tone(message, normalized),
            urgency=self.detect_urgency(normalized),
            source=source,
        )

    async def _carry_over(
        self,
        message: str,
        normalized: str,
        session: Optional[Session],
    ) -> Optional[tuple[Intent, float]]:
        """Short affirmations inherit the topic of the previous turns."""
        if session is None or not session.has_history:
            return None
        if not await self.is_affirmation(message, normalized):
            return None

        last_assistant = session.last_turn("assistant")
        if last_assistant:
            topic = self.topic_of(last_assistant.content)
            if topic:
                return topic, self.settings.affirmation_confidence

        last_user = session.last_turn("user")
        if last_user:
            previous = last_user.intent or self._classify_keywords(normalize_text(last_user.content))
            if previous and previous != Intent.GENERAL:
                return previous, PREVIOUS_TURN_CONFIDENCE

        return None

    async def is_affirmation(self, message: str, normalized: Optional[str] = None) -> bool:
        """
        Short agreement in any language.

        The lexicon is checked first. Otherwise, for short messages with
        no intent keyword of their own, the message is compared with the
        affirmation examples (embeddings) or translated to English and
        checked against the lexicon again (keyword-only mode).
        """
        if self.affirmations.is_affirmation(message):
            return True
        if not self.affirmations.is_short(message):
            return False

        normalized = normalized if normalized is not None else normalize_text(message)
        if self._classify_keywords(normalized) is not None:
            return False

        if self.embeddings is not None:
            return await self._is_semantic_affirmation(message)
        if self.translator is not None:
            translated = await self._translate(message)
            return bool(translated) and self.affirmations.is_affirmation(translated)
        return False

    async def _is_semantic_affirmation(self, message: str) -> bool:
        if not await self.warm_up() or not self._affirmation_vectors:
            return False
        query = await self._embed_query(message)
        if query is None:
            return False

        affirmation = max(cosine_similarity(query, vec) for vec in self._affirmation_vectors)
        if affirmation < self.settings.affirmation_similarity_threshold:
            return False
        closest_intent = max(
            (cosine_similarity(query, vec) for vectors in self._clusters.values() for vec in vectors),
            default=0.0,
        )
        logger.debug(f"Affirmation similarity {affirmation:.3f} vs closest intent example {closest_intent:.3f}")
        return affirmation > closest_intent

    def topic_of(self, text: str) -> Optional[Intent]:
        """Topic signalled by a (usually assistant) message, by precedence."""
        normalized = normalize_text(text)
        for intent in TOPIC_PRECEDENCE:
            if matches_any(normalized, self.topic_patterns.get(intent, [])):
                return intent
        return None

    async def _classify_semantic(self, message: str) -> Optional[tuple[Intent, float]]:
        if not self.embeddings:
            return None
        if not await self.warm_up():
            return None
        query = await self._embed_query(message)
        if query is None:
            return None

        scores = {
            intent: float(np.mean([cosine_similarity(query, vec) for vec in vectors]))
            for intent, vectors in self._clusters.items()
            if vectors
        }
        if not scores:
            return None

        best = max(scores, key=scores.get)
        similarity = scores[best]
        logger.debug(f"Semantic scores: { {i.value: round(s, 3) for i, s in scores.items()} }")

        if similarity < self.settings.intent_similarity_threshold:
            return None
        return best, min(similarity, self.settings.max_intent_confidence)

    async def _embed_query(self, message: str) -> Optional[np.ndarray]:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.embeddings.embed_query, message),
                timeout=self.settings.embedding_timeout_seconds,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Embedding unavailable, falling back to keywords: {e!r}")
            return None

    def _classify_keywords(self, normalized: str) -> Optional[Intent]:
        for intent, patterns in self.intent_patterns.items():
            if matches_any(normalized, patterns):
                return intent
        # A bare amount ("$500", "1000 pesos") is a donation answer
        if has_amount(normalized):
            return Intent.DONATE
        return None

    async def _classify_translated(self, message: str) -> Optional[Intent]:
        logger.warning("No embedding provider and no keyword match; translating message with LLM")
        translated = await self._translate(message)
        if not translated:
            return None
        return self._classify_keywords(normalize_text(translated))

    async def _translate(self, message: str) -> Optional[str]:
        """English translation of a message, cached per normalized message."""
        key = cache_key(message)
        cached = self._translations.get(key)
        if cached is not None:
            return cached

        try:
            translated = await asyncio.wait_for(
                asyncio.to_thread(self.translator.complete, TRANSLATION_PROMPT.format(message=message), None, 0.0, 200),
                timeout=self.settings.generation_timeout_seconds,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Translation fallback failed: {e!r}")
            return None

        self._translations.set(key, translated)
        return translated

    # ----- independent signals -----

    def detect_emotional_tone(self, message: str, normalized: Optional[str] = None) -> EmotionalTone:
        normalized = normalized if normalized is not None else normalize_text(message)
        for tone, patterns in self.emotion_patterns.items():
            if matches_any(normalized, patterns):
                return tone
        if "!" in message:
            return EmotionalTone.EXCITED
        if "?" in message:
            return EmotionalTone.CONCERNED
        return EmotionalTone.NEUTRAL

    def detect_urgency(self, normalized: str) -> Urgency:
        for level in (Urgency.HIGH, Urgency.MEDIUM):
            if matches_any(normalized, self.urgency_patterns.get(level, [])):
                return level
        return Urgency.LOW

    def cache_stats(self) -> dict:
        return self.cache.stats()
