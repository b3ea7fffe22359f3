"""
Configuration loader for vecstore.

Loads settings from config.json and provides typed access via dataclasses.
Supports singleton pattern for global access and runtime reload capability.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .exceptions import ConfigurationError


@dataclass
class PathsConfig:
    """Configuration for file system paths."""
    database_path: Path
    logs_directory: Path


@dataclass
class DatabaseConfig:
    """Configuration for the SQLite data source."""
    pool_size: int
    timeout: float
    journal_mode: str


@dataclass
class EmbeddingConfig:
    """Configuration for the OpenAI-compatible embedding generator."""
    endpoint: str
    api_key: str
    model: str
    dimensions: int
    batch_size: int
    max_retries: int


@dataclass
class LoggingConfig:
    """Configuration for logging behavior."""
    level: str
    format: str
    max_file_size_mb: int
    backup_count: int


@dataclass
class Config:
    """
    Main configuration container holding all config sections.

    Provides singleton access via get_config() function.
    """
    paths: PathsConfig
    database: DatabaseConfig
    embedding: EmbeddingConfig
    logging: LoggingConfig
    project_root: Path = field(default_factory=Path)

    @classmethod
    def from_file(cls, config_path: Path) -> "Config":
        """
        Load configuration from a JSON file.

        Args:
            config_path: Path to the config.json file.

        Returns:
            Populated Config instance.

        Raises:
            ConfigurationError: If file is missing or invalid.
        """
        if not config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {config_path}",
                {"path": str(config_path)}
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Invalid JSON in config file: {e}",
                {"path": str(config_path)}
            )

        project_root = config_path.parent.parent

        return cls._parse_config(data, project_root)

    @classmethod
    def defaults(cls, project_root: Path = None) -> "Config":
        """Build a Config with every section at its default values."""
        return cls._parse_config({}, Path(project_root or Path.cwd()))

    @classmethod
    def _parse_config(cls, data: dict, project_root: Path) -> "Config":
        """Parse raw config dict into typed Config object."""
        paths_data = data.get("paths", {})
        paths = PathsConfig(
            database_path=cls._resolve_path(paths_data.get("database_path", "output/vecstore.db"), project_root),
            logs_directory=cls._resolve_path(paths_data.get("logs_directory", "output/logs"), project_root)
        )

        db_data = data.get("database", {})
        database = DatabaseConfig(
            pool_size=db_data.get("pool_size", 4),
            timeout=db_data.get("timeout", 30.0),
            journal_mode=db_data.get("journal_mode", "WAL")
        )

        if database.pool_size < 1:
            raise ConfigurationError(
                "database.pool_size must be at least 1",
                {"pool_size": database.pool_size}
            )

        emb_data = data.get("embedding", {})
        embedding = EmbeddingConfig(
            endpoint=emb_data.get("endpoint", ""),
            api_key=emb_data.get("api_key", ""),
            model=emb_data.get("model", "text-embedding-3-small"),
            dimensions=emb_data.get("dimensions", 1536),
            batch_size=emb_data.get("batch_size", 32),
            max_retries=emb_data.get("max_retries", 5)
        )

        log_data = data.get("logging", {})
        logging_cfg = LoggingConfig(
            level=log_data.get("level", "INFO"),
            format=log_data.get("format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
            max_file_size_mb=log_data.get("max_file_size_mb", 10),
            backup_count=log_data.get("backup_count", 5)
        )

        return cls(
            paths=paths,
            database=database,
            embedding=embedding,
            logging=logging_cfg,
            project_root=project_root
        )

    @staticmethod
    def _resolve_path(path_str: str, project_root: Path) -> Path:
        """Resolve a path string, making relative paths absolute."""
        path = Path(path_str)
        if path.is_absolute():
            return path
        return project_root / path


_config_instance: Optional[Config] = None


def get_config(config_path: Path = None) -> Config:
    """
    Get the singleton Config instance.

    Args:
        config_path: Optional path to config file. If not provided,
                    searches upward from current directory.

    Returns:
        The global Config instance.

    Raises:
        ConfigurationError: If config cannot be loaded.
    """
    global _config_instance

    if _config_instance is None or config_path is not None:
        if config_path is None:
            config_path = _find_config_file()
        _config_instance = Config.from_file(Path(config_path))

    return _config_instance


def get_config_or_defaults() -> Config:
    """
    Get the global Config, falling back to defaults when no config file exists.

    Library entry points use this so that collections work without a
    config/config.json next to the calling program.
    """
    try:
        return get_config()
    except ConfigurationError:
        return Config.defaults()


def _find_config_file() -> Path:
    """Search upward from current directory to find config/config.json."""
    current = Path.cwd()

    for _ in range(10):
        config_path = current / "config" / "config.json"
        if config_path.exists():
            return config_path

        parent = current.parent
        if parent == current:
            break
        current = parent

    raise ConfigurationError(
        "Could not find config/config.json in current directory or parents"
    )


def reload_config(config_path: Path = None) -> Config:
    """
    Force reload of configuration.

    Args:
        config_path: Optional path to config file.

    Returns:
        Fresh Config instance.
    """
    global _config_instance
    _config_instance = None
    return get_config(config_path)
