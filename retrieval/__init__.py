"""Retrieval layer: embeddings and knowledge snippets."""

from .embedding_cache import EmbeddingCache
from .embeddings_manager import (
    BaseEmbeddingProvider,
    OpenAIEmbeddingProvider,
    LocalEmbeddingProvider,
    EmbeddingsManager,
    create_embeddings_manager,
    cosine_similarity,
)
from .knowledge_client import (
    BaseKnowledgeClient,
    NullKnowledgeClient,
    HttpKnowledgeClient,
    audience_for_role,
    create_knowledge_client,
)

__all__ = [
    "EmbeddingCache",
    "BaseEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "LocalEmbeddingProvider",
    "EmbeddingsManager",
    "create_embeddings_manager",
    "cosine_similarity",
    "BaseKnowledgeClient",
    "NullKnowledgeClient",
    "HttpKnowledgeClient",
    "audience_for_role",
    "create_knowledge_client",
]
