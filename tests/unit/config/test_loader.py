"""Tests for config loading and cache construction."""

import json
from pathlib import Path

from pydantic import ValidationError
import pytest
import yaml

from memento.core.caching import (
    EvictionPolicy,
    FSStore,
    JSONSerializer,
    MemoryStore,
    NullStore,
    PickleSerializer,
    RemoteStore,
)
from memento.core.config import CacheConfig, MementoConfig, StoreConfig
import memento.core.config.loader as config_loader


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep developer environment variables out of config tests."""
    monkeypatch.delenv("MEMENTO_CACHE_DIR", raising=False)
    monkeypatch.delenv("MEMENTO_REMOTE_URL", raising=False)


@pytest.fixture
def sample_config_data():
    """Sample configuration data for testing."""
    return {
        "logging": {"level": "DEBUG", "structured": True},
        "cache": {
            "store": {"backend": "fs", "root": "data/cache"},
            "max_entries": 500,
            "ttl_seconds": 3600,
            "eviction": "fifo",
        },
    }


class TestLoadConfig:
    """Tests for raw config loading."""

    def test_detect_format(self):
        """Test format detection from the extension."""
        assert config_loader.detect_format("memento.json") == "json"
        assert config_loader.detect_format(Path("memento.yml")) == "yaml"
        assert config_loader.detect_format("memento.YAML") == "yaml"

    def test_detect_format_invalid(self):
        """Test unsupported extensions are rejected."""
        with pytest.raises(ValueError, match="Unsupported config format"):
            config_loader.detect_format("memento.toml")

    def test_load_json(self, tmp_path, sample_config_data):
        """Test loading a JSON config."""
        path = tmp_path / "memento.json"
        path.write_text(json.dumps(sample_config_data))
        assert config_loader.load_config(path) == sample_config_data

    def test_load_yaml(self, tmp_path, sample_config_data):
        """Test loading a YAML config."""
        path = tmp_path / "memento.yaml"
        path.write_text(yaml.safe_dump(sample_config_data))
        assert config_loader.load_config(path) == sample_config_data

    def test_empty_yaml_is_empty_mapping(self, tmp_path):
        """Test an empty file loads as {}."""
        path = tmp_path / "memento.yaml"
        path.write_text("")
        assert config_loader.load_config(path) == {}

    def test_missing_file(self, tmp_path):
        """Test a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            config_loader.load_config(tmp_path / "absent.yaml")

    def test_invalid_json(self, tmp_path):
        """Test malformed JSON raises ValueError."""
        path = tmp_path / "memento.json"
        path.write_text("{not json")
        with pytest.raises(ValueError, match="Invalid JSON"):
            config_loader.load_config(path)

    def test_invalid_yaml(self, tmp_path):
        """Test malformed YAML raises ValueError."""
        path = tmp_path / "memento.yaml"
        path.write_text("cache: [unclosed")
        with pytest.raises(ValueError, match="Invalid YAML"):
            config_loader.load_config(path)

    def test_non_mapping_root(self, tmp_path):
        """Test a list at the root is rejected."""
        path = tmp_path / "memento.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError, match="must be a mapping"):
            config_loader.load_config(path)


class TestLoadAppConfig:
    """Tests for validated application config."""

    def test_defaults_when_file_missing(self, tmp_path, monkeypatch):
        """Test a missing default file yields default settings."""
        monkeypatch.chdir(tmp_path)
        config = config_loader.load_app_config()
        assert config == MementoConfig()
        assert config.cache.store.backend == "memory"

    def test_values_from_file(self, tmp_path, sample_config_data):
        """Test file values are validated into models."""
        path = tmp_path / "memento.yaml"
        path.write_text(yaml.safe_dump(sample_config_data))

        config = config_loader.load_app_config(path)

        assert config.logging.level == "DEBUG"
        assert config.logging.structured is True
        assert config.cache.store.root == Path("data/cache")
        assert config.cache.eviction is EvictionPolicy.FIFO
        assert config.cache.max_entries == 500

    def test_invalid_values_rejected(self, tmp_path):
        """Test pydantic validation errors propagate."""
        path = tmp_path / "memento.json"
        path.write_text(json.dumps({"logging": {"level": "LOUD"}}))
        with pytest.raises(ValidationError):
            config_loader.load_app_config(path)

    def test_env_fills_unset_store_settings(self, tmp_path, monkeypatch):
        """Test environment variables fill missing store locations."""
        monkeypatch.setenv("MEMENTO_CACHE_DIR", str(tmp_path / "env-cache"))
        monkeypatch.setenv("MEMENTO_REMOTE_URL", "https://objects.example.test/c")

        config = config_loader.load_app_config(tmp_path / "absent.yaml")

        assert config.cache.store.root == tmp_path / "env-cache"
        assert config.cache.store.base_url == "https://objects.example.test/c"

    def test_file_values_win_over_env(self, tmp_path, monkeypatch, sample_config_data):
        """Test explicit settings are not overridden by the environment."""
        monkeypatch.setenv("MEMENTO_CACHE_DIR", "/elsewhere")
        path = tmp_path / "memento.yaml"
        path.write_text(yaml.safe_dump(sample_config_data))

        config = config_loader.load_app_config(path)

        assert config.cache.store.root == Path("data/cache")


class TestBuilders:
    """Tests for build_store and build_cache."""

    @pytest.mark.parametrize(
        ("store_config", "expected"),
        [
            (StoreConfig(), MemoryStore),
            (StoreConfig(backend="null"), NullStore),
            (StoreConfig(backend="fs", root=Path("cache")), FSStore),
            (StoreConfig(backend="remote", base_url="https://objects.example.test"), RemoteStore),
        ],
    )
    def test_build_store(self, store_config, expected):
        """Test each backend is constructed."""
        assert isinstance(config_loader.build_store(store_config), expected)

    def test_fs_requires_root(self):
        """Test fs backend without a root fails clearly."""
        with pytest.raises(ValueError, match="MEMENTO_CACHE_DIR"):
            config_loader.build_store(StoreConfig(backend="fs"))

    def test_remote_requires_url(self):
        """Test remote backend without a URL fails clearly."""
        with pytest.raises(ValueError, match="MEMENTO_REMOTE_URL"):
            config_loader.build_store(StoreConfig(backend="remote"))

    def test_build_cache(self, tmp_path):
        """Test cache policy settings are applied."""
        cache = config_loader.build_cache(
            CacheConfig(
                store=StoreConfig(backend="fs", root=tmp_path),
                max_entries=10,
                max_bytes=4096,
                ttl_seconds=60,
                eviction=EvictionPolicy.FIFO,
                serializer="json",
            )
        )

        assert isinstance(cache.store, FSStore)
        assert isinstance(cache.serializer, JSONSerializer)
        assert cache.capacity.max_entries == 10
        assert cache.capacity.max_bytes == 4096
        assert cache.ttl_seconds == 60
        assert cache.eviction is EvictionPolicy.FIFO

    def test_build_cache_defaults(self):
        """Test default config builds an unbounded pickle cache in memory."""
        cache = config_loader.build_cache(CacheConfig())
        assert isinstance(cache.serializer, PickleSerializer)
        assert not cache.capacity.bounded
        assert cache.ttl_seconds is None
