"""Localized user-facing message catalog."""

import logging
from functools import lru_cache
from typing import Optional

import yaml

from config.settings import CONFIG_DIR

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "es"


class MessageCatalog:
    """Looks up localized templates, falling back to the default language."""

    def __init__(self, path: Optional[str] = None, default_language: str = DEFAULT_LANGUAGE):
        self.path = path or str(CONFIG_DIR / "messages.yaml")
        self.default_language = default_language
        with open(self.path, "r", encoding="utf-8") as f:
            self.messages = yaml.safe_load(f) or {}

        if self.default_language not in self.messages:
            raise ValueError(f"Default language '{default_language}' missing from {self.path}")

    def get(self, key: str, language: Optional[str] = None) -> str:
        """
        Get a template by dotted key ("errors.rate_limit").

        Args:
            key: Dotted template key
            language: Two-letter language code

        Returns:
            Localized text, or the default-language text if missing
        """
        language = (language or self.default_language).lower()[:2]
        text = self._lookup(self.messages.get(language, {}), key)
        if text is None:
            text = self._lookup(self.messages[self.default_language], key)
        if text is None:
            raise KeyError(f"Unknown message key: {key}")
        return text

    @staticmethod
    def _lookup(tree: dict, key: str) -> Optional[str]:
        node = tree
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return node if isinstance(node, str) else None

    def languages(self) -> list[str]:
        return list(self.messages.keys())


@lru_cache(maxsize=1)
def get_message_catalog() -> MessageCatalog:
    """Process-wide catalog for the bundled messages file."""
    return MessageCatalog()
