"""
Core module providing foundational components.

This module contains the configuration loader, centralized logging setup,
and custom exception hierarchy. It has no internal dependencies.
"""

from .config_loader import (
    get_config,
    get_config_or_defaults,
    Config,
    DatabaseConfig,
    EmbeddingConfig,
)
from .logger import get_logger
from .exceptions import (
    VecStoreError,
    ConfigurationError,
    DatabaseError,
    SchemaError,
    MappingError,
    SchemaMismatchError,
    InvalidArgumentError,
    UseAfterDisposeError,
    EmbeddingError,
)

__all__ = [
    "get_config",
    "get_config_or_defaults",
    "Config",
    "DatabaseConfig",
    "EmbeddingConfig",
    "get_logger",
    "VecStoreError",
    "ConfigurationError",
    "DatabaseError",
    "SchemaError",
    "MappingError",
    "SchemaMismatchError",
    "InvalidArgumentError",
    "UseAfterDisposeError",
    "EmbeddingError",
]
