"""Core utilities for the gateway application."""

from marketgate.app.core.cache import (
    CacheBackend,
    InMemoryCache,
    get_cache,
    reset_cache,
)
from marketgate.app.core.config import settings
from marketgate.app.core.logging import get_logger, setup_logging

__all__ = [
    "CacheBackend",
    "InMemoryCache",
    "get_cache",
    "reset_cache",
    "settings",
    "get_logger",
    "setup_logging",
]
