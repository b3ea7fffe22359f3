"""
Tests for the configuration loader module.

Tests config loading, parsing, path resolution, and error handling.
"""

import json
import pytest
from pathlib import Path

from vecstore.core.config_loader import (
    Config,
    PathsConfig,
    get_config,
    get_config_or_defaults,
    reload_config,
)
from vecstore.core.exceptions import ConfigurationError


class TestPathsConfig:
    """Tests for PathsConfig dataclass."""

    def test_paths_config_creation(self, temp_dir: Path):
        """Test creating PathsConfig with valid paths."""
        config = PathsConfig(
            database_path=temp_dir / "db.sqlite",
            logs_directory=temp_dir / "logs"
        )

        assert config.database_path == temp_dir / "db.sqlite"
        assert config.logs_directory == temp_dir / "logs"


class TestConfigFromFile:
    """Tests for loading config from file."""

    def test_load_valid_config(self, temp_config: Path, reset_config_singleton):
        """Test loading a valid configuration file."""
        config = Config.from_file(temp_config)

        assert config.database.pool_size == 2
        assert config.database.timeout == 5.0
        assert config.embedding.model == "test-embedding"
        assert config.embedding.dimensions == 4
        assert config.logging.level == "DEBUG"

    def test_load_missing_config_raises_error(self, temp_dir: Path):
        """Test that loading non-existent config raises ConfigurationError."""
        fake_path = temp_dir / "nonexistent" / "config.json"

        with pytest.raises(ConfigurationError) as exc_info:
            Config.from_file(fake_path)

        assert "not found" in str(exc_info.value.message).lower()

    def test_load_invalid_json_raises_error(self, temp_dir: Path):
        """Test that invalid JSON raises ConfigurationError."""
        config_dir = temp_dir / "config"
        config_dir.mkdir()
        config_path = config_dir / "config.json"
        config_path.write_text("{ invalid json }")

        with pytest.raises(ConfigurationError) as exc_info:
            Config.from_file(config_path)

        assert "invalid json" in str(exc_info.value.message).lower()

    def test_config_resolves_relative_paths(self, temp_dir: Path):
        """Test that relative paths are resolved against the project root."""
        config_dir = temp_dir / "config"
        config_dir.mkdir()
        config_path = config_dir / "config.json"
        config_path.write_text(json.dumps({"paths": {"database_path": "data/store.db"}}))

        config = Config.from_file(config_path)

        assert config.paths.database_path == temp_dir / "data" / "store.db"
        assert config.paths.logs_directory.is_absolute()

    def test_config_default_values(self, temp_dir: Path):
        """Test that missing config values get defaults."""
        config_dir = temp_dir / "config"
        config_dir.mkdir()
        config_path = config_dir / "config.json"
        config_path.write_text(json.dumps({"database": {}}))

        config = Config.from_file(config_path)

        assert config.database.pool_size == 4
        assert config.database.journal_mode == "WAL"
        assert config.embedding.batch_size == 32
        assert config.logging.backup_count == 5

    def test_invalid_pool_size_raises_error(self, temp_dir: Path):
        config_dir = temp_dir / "config"
        config_dir.mkdir()
        config_path = config_dir / "config.json"
        config_path.write_text(json.dumps({"database": {"pool_size": 0}}))

        with pytest.raises(ConfigurationError):
            Config.from_file(config_path)


class TestGetConfig:
    """Tests for the get_config singleton function."""

    def test_get_config_returns_same_instance(self, temp_config: Path, reset_config_singleton):
        """Test that get_config returns singleton instance."""
        config1 = get_config(temp_config)
        config2 = get_config()

        assert config1 is config2

    def test_reload_config_creates_new_instance(self, temp_config: Path, reset_config_singleton):
        """Test that reload_config creates a fresh instance."""
        get_config(temp_config)

        with open(temp_config, "r") as f:
            data = json.load(f)
        data["embedding"]["model"] = "other-model"
        with open(temp_config, "w") as f:
            json.dump(data, f)

        config2 = reload_config(temp_config)

        assert config2.embedding.model == "other-model"

    def test_defaults_when_no_config_file(self, temp_dir: Path, reset_config_singleton, monkeypatch):
        """Without a config file anywhere upward, defaults are used."""
        monkeypatch.chdir(temp_dir)

        config = get_config_or_defaults()

        assert config.database.pool_size == 4
        assert config.paths.database_path == Path.cwd() / "output" / "vecstore.db"
