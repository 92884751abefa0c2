"""Configuration for the case assistant."""

from .settings import Settings, CONFIG_DIR

__all__ = ["Settings", "CONFIG_DIR"]
