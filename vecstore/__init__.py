"""
vecstore: schema-driven record collections on SQLite with vector search.

Maps dict or dataclass records onto one table per collection, with
sqlite-vec powering nearest-neighbor search, and shares a pooled data
source safely between many collections.
"""

from .core import (
    VecStoreError,
    SchemaError,
    MappingError,
    SchemaMismatchError,
    InvalidArgumentError,
    UseAfterDisposeError,
)
from .database import ConnectionHandle, DataSource, create_data_source
from .model import DistanceFunction, FieldDefinition, ModelBuilder, RecordMapping, SchemaDefinition, StorageType
from .store import Collection, CollectionOptions, DynamicCollection, SearchResult, VectorStore

__version__ = "1.0.0"

__all__ = [
    "VecStoreError",
    "SchemaError",
    "MappingError",
    "SchemaMismatchError",
    "InvalidArgumentError",
    "UseAfterDisposeError",
    "ConnectionHandle",
    "DataSource",
    "create_data_source",
    "DistanceFunction",
    "FieldDefinition",
    "ModelBuilder",
    "RecordMapping",
    "SchemaDefinition",
    "StorageType",
    "Collection",
    "CollectionOptions",
    "DynamicCollection",
    "SearchResult",
    "VectorStore",
]
