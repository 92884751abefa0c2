"""Application settings."""

import os
from pathlib import Path
from typing import Optional
from pydantic import BaseModel, Field

CONFIG_DIR = Path(__file__).parent


class Settings(BaseModel):
    """Case assistant configuration settings."""

    # LLM Provider settings
    llm_provider: str = "openai"  # "openai" or "anthropic"
    llm_model: Optional[str] = None  # Override default model
    llm_temperature: float = 0.7
    llm_max_tokens: int = 1000

    # API Keys
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None

    # Embedding settings
    embedding_provider: str = "openai"  # "openai", "local" or "none"
    embedding_model: str = "text-embedding-3-small"
    local_embedding_model: str = "paraphrase-multilingual-MiniLM-L12-v2"

    # Intent resolution
    intent_similarity_threshold: float = 0.7
    max_intent_confidence: float = 0.95
    affirmation_confidence: float = 0.95
    max_affirmation_words: int = 4
    affirmation_fuzzy_threshold: float = 85.0
    affirmation_similarity_threshold: float = 0.8
    intent_cache_ttl_seconds: int = 60 * 60
    intent_cache_max_entries: int = 1000

    # Embedding cache
    embedding_cache_ttl_seconds: int = 24 * 60 * 60
    embedding_cache_max_entries: int = 1000

    # Sessions and profiles
    session_ttl_seconds: int = 24 * 60 * 60
    max_sessions: int = 10000
    max_turns_per_session: int = 100
    max_profiles: int = 10000
    profile_history_window: int = 50
    engagement_window_days: int = 7
    high_engagement_interactions: int = 5
    medium_engagement_interactions: int = 2

    # Rate limiting
    user_requests_per_window: int = 100
    admin_requests_per_window: int = 1000
    global_requests_per_window: int = 10000
    rate_limit_window_seconds: int = 60 * 60

    # Timeouts for external calls (seconds)
    embedding_timeout_seconds: float = 5.0
    knowledge_timeout_seconds: float = 10.0
    generation_timeout_seconds: float = 30.0

    # Validation
    max_message_length: int = 2000

    # Knowledge retrieval
    knowledge_base_url: Optional[str] = None
    knowledge_base_token: Optional[str] = None
    max_knowledge_results: int = 3
    default_audience: str = "donors"

    # Donation flow
    alternate_fund_alias: str = "toto.fondo.rescate"
    alternate_fund_name: str = "Toto Rescue Fund"
    suggested_donation_amounts: list[int] = Field(
        default_factory=lambda: [500, 1000, 2500, 5000]
    )
    default_language: str = "es"

    # Data files
    intent_examples_path: str = str(CONFIG_DIR / "intent_examples.yaml")
    intent_keywords_path: str = str(CONFIG_DIR / "intent_keywords.yaml")
    messages_path: str = str(CONFIG_DIR / "messages.yaml")

    def __init__(self, **data):
        # Auto-load secrets from environment if not provided
        if "openai_api_key" not in data or data["openai_api_key"] is None:
            data["openai_api_key"] = os.environ.get("OPENAI_API_KEY")

        if "anthropic_api_key" not in data or data["anthropic_api_key"] is None:
            data["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")

        if "knowledge_base_url" not in data or data["knowledge_base_url"] is None:
            data["knowledge_base_url"] = os.environ.get("KNOWLEDGE_BASE_URL")

        if "knowledge_base_token" not in data or data["knowledge_base_token"] is None:
            data["knowledge_base_token"] = os.environ.get("KNOWLEDGE_BASE_TOKEN")

        super().__init__(**data)

    def get_llm_api_key(self) -> Optional[str]:
        """Get the API key for the configured LLM provider."""
        if self.llm_provider == "openai":
            return self.openai_api_key
        elif self.llm_provider == "anthropic":
            return self.anthropic_api_key
        return None
