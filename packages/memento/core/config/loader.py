"""Config file loading (JSON or YAML) and construction of configured caches."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

import yaml

from memento.core.caching import (
    Capacity,
    FSStore,
    MemoCache,
    MemoryStore,
    NullStore,
    RemoteStore,
    Store,
)
from memento.core.caching.serializers import get_serializer
from memento.core.config.models import CacheConfig, MementoConfig, StoreConfig
from memento.core.utils.logging import configure_logging as _configure_logging

logger = logging.getLogger(__name__)

# Looked up relative to the working directory when no path is given
DEFAULT_CONFIG_PATH = Path("memento.yaml")

_FORMATS = {".json": "json", ".yaml": "yaml", ".yml": "yaml"}


def detect_format(file_path: Path | str) -> str:
    """Map a config file extension to "json" or "yaml" (case-insensitive).

    Raises:
        ValueError: For any other extension

    Example:
        >>> detect_format("memento.yml")
        'yaml'
    """
    suffix = Path(file_path).suffix.lower()
    try:
        return _FORMATS[suffix]
    except KeyError:
        raise ValueError(f"Unsupported config format: {suffix}") from None


def _parse(text: str, fmt: str, path: Path) -> Any:
    if fmt == "json":
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {path}: {e}") from e
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e


def load_config(path: str | Path) -> dict[str, Any]:
    """Read a config file into a plain mapping.

    An empty YAML file yields {}.

    Raises:
        FileNotFoundError: If the file is missing
        ValueError: On an unknown extension, unparseable content or a non-mapping root
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Config file does not exist: {path}")

    content = _parse(path.read_text(encoding="utf-8"), detect_format(path), path)
    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ValueError(f"Config root in {path} must be a mapping, got {type(content).__name__}")
    return content


def load_app_config(path: str | Path | None = None) -> MementoConfig:
    """Build a validated MementoConfig.

    A missing file means all defaults. Store locations left unset are taken
    from MEMENTO_CACHE_DIR and MEMENTO_REMOTE_URL.

    Args:
        path: Config file; DEFAULT_CONFIG_PATH when None

    Raises:
        ValidationError: If the file content does not match the models
    """
    path = Path(path) if path is not None else DEFAULT_CONFIG_PATH

    if path.exists():
        config = MementoConfig.model_validate(load_config(path))
    else:
        logger.debug(f"No config file at {path}, using defaults")
        config = MementoConfig()

    _load_env_vars_into_config(config)
    return config


def _load_env_vars_into_config(config: MementoConfig) -> None:
    """Fill unset store settings from the environment (mutates config)."""
    updates: dict[str, Any] = {}

    if config.cache.store.root is None:
        cache_dir = os.getenv("MEMENTO_CACHE_DIR")
        if cache_dir:
            logger.debug("Loaded MEMENTO_CACHE_DIR from environment")
            updates["root"] = Path(cache_dir)

    if config.cache.store.base_url is None:
        remote_url = os.getenv("MEMENTO_REMOTE_URL")
        if remote_url:
            logger.debug("Loaded MEMENTO_REMOTE_URL from environment")
            updates["base_url"] = remote_url

    if updates:
        config.cache.store = config.cache.store.model_copy(update=updates)


def build_store(config: StoreConfig) -> Store:
    """Construct the configured storage backend.

    Raises:
        ValueError: If a required backend setting is missing
    """
    if config.backend == "memory":
        return MemoryStore()
    if config.backend == "null":
        return NullStore()
    if config.backend == "fs":
        if config.root is None:
            raise ValueError("fs store requires cache.store.root (or MEMENTO_CACHE_DIR)")
        return FSStore(config.root)
    if config.base_url is None:
        raise ValueError("remote store requires cache.store.base_url (or MEMENTO_REMOTE_URL)")
    return RemoteStore(config.base_url, timeout_seconds=config.timeout_seconds)


def build_cache(config: CacheConfig) -> MemoCache:
    """Construct an explicit MemoCache from configuration."""
    return MemoCache(
        build_store(config.store),
        serializer=get_serializer(config.serializer),
        capacity=Capacity(max_entries=config.max_entries, max_bytes=config.max_bytes),
        ttl_seconds=config.ttl_seconds,
        eviction=config.eviction,
    )


def configure_logging(config: MementoConfig | None = None) -> None:
    """Configure Python logging from app config.

    Args:
        config: MementoConfig instance (loads default if None)
    """
    if config is None:
        config = load_app_config()

    _configure_logging(
        level=config.logging.level,
        format_string=config.logging.format,
        filename=config.logging.filename,
        structured=config.logging.structured,
    )
