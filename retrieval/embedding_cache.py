"""Shared cache of text embeddings."""

import logging
from typing import Optional

import numpy as np

from utils.text_normalization import cache_key
from utils.ttl_cache import TTLCache

logger = logging.getLogger(__name__)


class EmbeddingCache:
    """
    Memoizes vectors for intent-example phrases and classified messages.

    Keys are namespaced by model so switching providers never mixes
    vectors of different dimensionality.
    """

    def __init__(self, max_entries: int = 1000, ttl_seconds: float = 24 * 60 * 60, clock=None):
        kwargs = {"clock": clock} if clock else {}
        self._cache: TTLCache[np.ndarray] = TTLCache(max_entries, ttl_seconds, **kwargs)

    @classmethod
    def from_settings(cls, settings) -> "EmbeddingCache":
        return cls(settings.embedding_cache_max_entries, settings.embedding_cache_ttl_seconds)

    @staticmethod
    def _key(model: str, text: str) -> str:
        return f"{model}::{cache_key(text)}"

    def get(self, model: str, text: str) -> Optional[np.ndarray]:
        return self._cache.get(self._key(model, text))

    def set(self, model: str, text: str, vector: np.ndarray) -> None:
        self._cache.set(self._key(model, text), vector)

    def __len__(self) -> int:
        return len(self._cache)

    def clear(self) -> None:
        self._cache.clear()

    def stats(self) -> dict:
        return self._cache.stats()
