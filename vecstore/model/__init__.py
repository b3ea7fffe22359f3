"""
Schema model: runtime definitions, compiled record mappings and the
builder that turns one into the other.
"""

from .definition import DistanceFunction, FieldDefinition, SchemaDefinition, StorageType
from .mapping import FieldMapping, RecordMapping, blob_to_vector, vector_to_blob
from .builder import ModelBuilder

__all__ = [
    "DistanceFunction",
    "FieldDefinition",
    "SchemaDefinition",
    "StorageType",
    "FieldMapping",
    "RecordMapping",
    "blob_to_vector",
    "vector_to_blob",
    "ModelBuilder",
]
