"""
Pytest fixtures and configuration for the test suite.

Provides temporary directories, temporary configs, data sources and
schema definitions so that tests are isolated and never touch real data.
"""

import hashlib
import json
import pytest
import tempfile
import shutil
from pathlib import Path
from typing import Generator, List, Sequence

import sys
_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from vecstore.database import DataSource
from vecstore.model import DistanceFunction, FieldDefinition, SchemaDefinition, StorageType


class FakeEmbeddingGenerator:
    """Deterministic embedding generator recording every call."""

    def __init__(self, dimensions: int = 4):
        self.dimensions = dimensions
        self.calls: List[List[str]] = []

    async def generate(self, texts: Sequence[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        return [self.vector_for(text) for text in texts]

    def vector_for(self, text: str) -> List[float]:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        return [(digest[i] + 1) / 256.0 for i in range(self.dimensions)]


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """
    Create a temporary directory for test files.

    Yields:
        Path to temporary directory, cleaned up after test.
    """
    tmp = tempfile.mkdtemp(prefix="vecstore_test_")
    yield Path(tmp)
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def temp_config(temp_dir: Path) -> Generator[Path, None, None]:
    """
    Create a temporary config.json for testing.

    Args:
        temp_dir: Temporary directory fixture.

    Yields:
        Path to temporary config file.
    """
    config_dir = temp_dir / "config"
    config_dir.mkdir()

    output_dir = temp_dir / "output"
    output_dir.mkdir()

    logs_dir = output_dir / "logs"
    logs_dir.mkdir()

    config_data = {
        "paths": {
            "database_path": str(output_dir / "test.db"),
            "logs_directory": str(logs_dir)
        },
        "database": {
            "pool_size": 2,
            "timeout": 5.0,
            "journal_mode": "WAL"
        },
        "embedding": {
            "endpoint": "http://localhost:9999/v1",
            "api_key": "test-key",
            "model": "test-embedding",
            "dimensions": 4,
            "batch_size": 2,
            "max_retries": 2
        },
        "logging": {
            "level": "DEBUG",
            "format": "%(levelname)s - %(message)s",
            "max_file_size_mb": 1,
            "backup_count": 1
        }
    }

    config_path = config_dir / "config.json"
    with open(config_path, "w", encoding="utf-8") as f:
        json.dump(config_data, f)

    yield config_path


@pytest.fixture
def temp_database(temp_dir: Path) -> Path:
    """
    Create path for a temporary database.

    Args:
        temp_dir: Temporary directory fixture.

    Returns:
        Path where test database should be created.
    """
    return temp_dir / "test.db"


@pytest.fixture
def data_source(temp_database: Path) -> Generator[DataSource, None, None]:
    """
    Create a DataSource on a temporary database, closed after the test.
    """
    source = DataSource(temp_database, pool_size=2, timeout=5.0)
    yield source
    source.close()


@pytest.fixture
def reset_config_singleton():
    """
    Reset the config singleton between tests.

    This ensures each test gets a fresh config instance.
    """
    from vecstore.core import config_loader
    original = config_loader._config_instance
    config_loader._config_instance = None
    yield
    config_loader._config_instance = original


@pytest.fixture
def reset_logger_singleton():
    """
    Reset the logger initialization flag between tests.

    Handlers added by the test are removed again afterwards.
    """
    import logging
    from vecstore.core import logger

    package_logger = logging.getLogger(logger.PACKAGE_LOGGER)
    original_handlers = list(package_logger.handlers)
    original_level = package_logger.level
    original_flag = logger._logger_initialized

    for handler in original_handlers:
        package_logger.removeHandler(handler)
    logger._logger_initialized = False
    yield

    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    for handler in original_handlers:
        package_logger.addHandler(handler)
    package_logger.setLevel(original_level)
    logger._logger_initialized = original_flag


@pytest.fixture
def book_definition() -> SchemaDefinition:
    """Definition with a text key, a title and a 3-dimensional cosine vector."""
    return SchemaDefinition([
        FieldDefinition("id", StorageType.TEXT, is_key=True),
        FieldDefinition("title", StorageType.TEXT),
        FieldDefinition.vector("embedding", 3, DistanceFunction.COSINE),
    ])


@pytest.fixture
def embedding_generator() -> FakeEmbeddingGenerator:
    """Deterministic 4-dimensional embedding generator."""
    return FakeEmbeddingGenerator(dimensions=4)
