"""Configuration models for memento."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from memento.core.caching.models import EvictionPolicy


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Root log level",
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string (ignored when structured=True)",
    )
    structured: bool = Field(default=False, description="Emit JSON log lines")
    filename: str | None = Field(default=None, description="Log file path (stdout if unset)")


class StoreConfig(BaseModel):
    """Storage backend selection."""

    backend: Literal["memory", "fs", "remote", "null"] = Field(
        default="memory", description="Store implementation"
    )
    root: Path | None = Field(
        default=None, description="Cache directory for the fs backend (env: MEMENTO_CACHE_DIR)"
    )
    base_url: str | None = Field(
        default=None,
        description="Object store URL for the remote backend (env: MEMENTO_REMOTE_URL)",
    )
    timeout_seconds: float = Field(default=10.0, gt=0, description="Remote request timeout")


class CacheConfig(BaseModel):
    """Cache policy configuration."""

    store: StoreConfig = Field(default_factory=StoreConfig)
    max_entries: int | None = Field(default=None, gt=0, description="Max cached entries")
    max_bytes: int | None = Field(default=None, gt=0, description="Max total value bytes")
    ttl_seconds: float | None = Field(default=None, gt=0, description="Max entry age")
    eviction: EvictionPolicy = Field(default=EvictionPolicy.LRU, description="Eviction order")
    serializer: Literal["pickle", "json"] = Field(default="pickle", description="Value encoding")


class MementoConfig(BaseModel):
    """Application-level configuration."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
