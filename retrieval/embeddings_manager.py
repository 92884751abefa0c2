"""Embedding providers and the cached embeddings manager."""

import logging
import os
from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from .embedding_cache import EmbeddingCache

logger = logging.getLogger(__name__)


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine similarity of two vectors; 0.0 when either is all zeros."""
    denom = np.linalg.norm(a) * np.linalg.norm(b)
    if denom == 0:
        return 0.0
    return float(np.dot(a, b) / denom)


class BaseEmbeddingProvider(ABC):
    """Turns texts into vectors."""

    @abstractmethod
    def embed_texts(self, texts: list[str]) -> list[np.ndarray]:
        """Embed a batch of texts, preserving order."""
        pass

    @abstractmethod
    def get_model_name(self) -> str:
        pass

    def is_available(self) -> bool:
        return True


class OpenAIEmbeddingProvider(BaseEmbeddingProvider):
    """Embeddings from the OpenAI API."""

    EMBEDDING_MODEL = "text-embedding-3-small"

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None, batch_size: int = 100):
        """
        Initialize the OpenAI embeddings provider.

        Args:
            api_key: OpenAI API key. If not provided, uses OPENAI_API_KEY env var.
            model: Embedding model (default: text-embedding-3-small)
            batch_size: Texts per API request
        """
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        self.model = model or self.EMBEDDING_MODEL
        self.batch_size = batch_size
        self.client = None

        if self.api_key:
            from openai import OpenAI
            self.client = OpenAI(api_key=self.api_key)
            logger.info(f"OpenAI client initialized for embeddings ({self.model})")
        else:
            logger.warning("No OpenAI API key provided. Embeddings will be disabled.")

    def embed_texts(self, texts: list[str]) -> list[np.ndarray]:
        if not self.client:
            raise RuntimeError("OpenAI client not initialized")

        all_embeddings = []
        for i in range(0, len(texts), self.batch_size):
            batch = texts[i:i + self.batch_size]
            try:
                response = self.client.embeddings.create(model=self.model, input=batch)
            except Exception as e:
                logger.error(f"Error embedding batch: {e}")
                raise
            all_embeddings.extend(np.array(item.embedding) for item in response.data)

            if i + self.batch_size < len(texts):
                logger.info(f"Embedded {i + self.batch_size}/{len(texts)} texts...")

        return all_embeddings

    def get_model_name(self) -> str:
        return self.model

    def is_available(self) -> bool:
        return self.client is not None


class LocalEmbeddingProvider(BaseEmbeddingProvider):
    """
    Multilingual sentence-transformers model running in-process.

    Spanish, English and Portuguese phrases land in the same vector space,
    so no translation step is needed before classification.
    """

    DEFAULT_MODEL = "paraphrase-multilingual-MiniLM-L12-v2"

    def __init__(self, model: Optional[str] = None):
        from sentence_transformers import SentenceTransformer

        self.model = model or self.DEFAULT_MODEL
        self._encoder = SentenceTransformer(self.model)
        logger.info(f"Loaded local embedding model: {self.model}")

    def embed_texts(self, texts: list[str]) -> list[np.ndarray]:
        vectors = self._encoder.encode(texts, convert_to_numpy=True)
        return [np.asarray(v) for v in vectors]

    def get_model_name(self) -> str:
        return self.model


class EmbeddingsManager:
    """Provider plus shared cache; only uncached texts reach the provider."""

    def __init__(self, provider: BaseEmbeddingProvider, cache: Optional[EmbeddingCache] = None):
        self.provider = provider
        self.cache = cache or EmbeddingCache()

    def embed_texts(self, texts: list[str]) -> list[np.ndarray]:
        """
        Embed texts, serving repeats from the cache.

        Raises:
            Whatever the provider raises; callers decide how to degrade.
        """
        model = self.provider.get_model_name()
        results: list[Optional[np.ndarray]] = [self.cache.get(model, t) for t in texts]
        missing = [i for i, vec in enumerate(results) if vec is None]

        if missing:
            vectors = self.provider.embed_texts([texts[i] for i in missing])
            for i, vec in zip(missing, vectors):
                self.cache.set(model, texts[i], vec)
                results[i] = vec

        return results

    def embed_query(self, text: str) -> np.ndarray:
        return self.embed_texts([text])[0]

    def is_available(self) -> bool:
        return self.provider.is_available()


def create_embeddings_manager(settings, cache: Optional[EmbeddingCache] = None) -> Optional[EmbeddingsManager]:
    """
    Build the manager for settings.embedding_provider.

    Returns None when embeddings are disabled or the provider has no
    credentials; intent resolution then runs on keywords only.
    """
    provider_name = settings.embedding_provider
    cache = cache or EmbeddingCache.from_settings(settings)

    if provider_name == "none":
        logger.info("Embeddings disabled by configuration")
        return None
    if provider_name == "local":
        provider = LocalEmbeddingProvider(settings.local_embedding_model)
    elif provider_name == "openai":
        provider = OpenAIEmbeddingProvider(settings.openai_api_key, settings.embedding_model)
    else:
        raise ValueError(f"Unsupported embedding provider: {provider_name}")

    if not provider.is_available():
        logger.warning(f"Embedding provider '{provider_name}' unavailable, using keyword intents only")
        return None
    return EmbeddingsManager(provider, cache)
