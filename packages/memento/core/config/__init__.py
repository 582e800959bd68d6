"""Configuration management for memento."""

from memento.core.config.loader import (
    build_cache,
    build_store,
    configure_logging,
    load_app_config,
    load_config,
)
from memento.core.config.models import CacheConfig, LoggingConfig, MementoConfig, StoreConfig

__all__ = [
    # Loaders
    "load_config",
    "load_app_config",
    "configure_logging",
    # Builders
    "build_store",
    "build_cache",
    # Models
    "MementoConfig",
    "CacheConfig",
    "StoreConfig",
    "LoggingConfig",
]
