"""
Runtime schema definitions for collections.

A SchemaDefinition is an ordered, immutable description of the fields a
collection stores. Dynamic collections have no static record type, so the
definition is the only source of their shape. Definitions for dataclass
records can be derived from the dataclass itself.
"""

import dataclasses
import typing
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional, Tuple

from ..core import SchemaError


class StorageType(str, Enum):
    """Semantic storage type of a field."""
    TEXT = "text"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    BYTES = "bytes"
    VECTOR = "vector"
    EMBEDDED_TEXT = "embedded_text"

    @property
    def is_vector(self) -> bool:
        """True for types that produce a searchable vector column."""
        return self in (StorageType.VECTOR, StorageType.EMBEDDED_TEXT)


class DistanceFunction(str, Enum):
    """Distance function used for nearest-neighbor search on a vector field."""
    COSINE = "cosine"
    EUCLIDEAN = "euclidean"
    DOT = "dot"


@dataclass(frozen=True)
class FieldDefinition:
    """
    Description of a single collection field.

    Attributes:
        name: Field name as it appears in records.
        storage_type: Semantic storage type.
        is_key: Whether this field is the collection key.
        vector_dimensions: Vector length, required for vector types.
        distance_function: Search distance function for vector types.
        storage_name: Optional column name override.
    """
    name: str
    storage_type: StorageType
    is_key: bool = False
    vector_dimensions: Optional[int] = None
    distance_function: Optional[DistanceFunction] = None
    storage_name: Optional[str] = None

    def __post_init__(self):
        # Accept plain strings for the enum fields
        try:
            object.__setattr__(self, "storage_type", StorageType(self.storage_type))
            if self.distance_function is not None:
                object.__setattr__(
                    self, "distance_function", DistanceFunction(self.distance_function)
                )
        except ValueError as e:
            raise SchemaError(f"Invalid field definition for '{self.name}': {e}")

    @classmethod
    def key(cls, name: str, storage_type: StorageType = StorageType.TEXT, **kwargs) -> "FieldDefinition":
        """Shorthand for a key field."""
        return cls(name, storage_type, is_key=True, **kwargs)

    @classmethod
    def vector(
        cls,
        name: str,
        dimensions: int,
        distance_function: DistanceFunction = DistanceFunction.COSINE,
        **kwargs
    ) -> "FieldDefinition":
        """Shorthand for a vector field."""
        return cls(
            name,
            StorageType.VECTOR,
            vector_dimensions=dimensions,
            distance_function=distance_function,
            **kwargs
        )


@dataclass(frozen=True)
class SchemaDefinition:
    """Ordered, immutable sequence of field definitions."""
    fields: Tuple[FieldDefinition, ...]

    def __init__(self, fields: Iterable[FieldDefinition]):
        object.__setattr__(self, "fields", tuple(fields))

    def __iter__(self):
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    @property
    def key_fields(self) -> Tuple[FieldDefinition, ...]:
        """All fields flagged as key."""
        return tuple(f for f in self.fields if f.is_key)

    @classmethod
    def from_dataclass(cls, record_type: type) -> "SchemaDefinition":
        """
        Derive a definition from a dataclass record type.

        Field metadata keys: ``key`` (bool), ``dimensions`` (int),
        ``distance`` (DistanceFunction or str), ``storage_type`` (overrides
        the annotation) and ``storage_name``.

        Args:
            record_type: Dataclass describing the record.

        Returns:
            SchemaDefinition for the dataclass fields.

        Raises:
            SchemaError: If the type is not a dataclass or a field
                annotation has no storage equivalent.
        """
        if not dataclasses.is_dataclass(record_type):
            raise SchemaError(
                f"Cannot derive a schema from {record_type!r}: not a dataclass",
                {"record_type": repr(record_type)}
            )

        hints = typing.get_type_hints(record_type)
        definitions = []

        for dc_field in dataclasses.fields(record_type):
            meta = dc_field.metadata
            storage_type = meta.get("storage_type") or _storage_type_for(
                hints.get(dc_field.name), dc_field.name
            )
            definitions.append(FieldDefinition(
                name=dc_field.name,
                storage_type=storage_type,
                is_key=bool(meta.get("key", False)),
                vector_dimensions=meta.get("dimensions"),
                distance_function=meta.get("distance"),
                storage_name=meta.get("storage_name"),
            ))

        return cls(definitions)


_SCALAR_ANNOTATIONS = {
    str: StorageType.TEXT,
    int: StorageType.INTEGER,
    float: StorageType.FLOAT,
    bool: StorageType.BOOLEAN,
    bytes: StorageType.BYTES,
}


def _storage_type_for(annotation: Any, field_name: str) -> StorageType:
    """Map a dataclass field annotation onto a storage type."""
    # Optional[X] -> X
    if typing.get_origin(annotation) is typing.Union:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            annotation = args[0]

    if annotation in _SCALAR_ANNOTATIONS:
        return _SCALAR_ANNOTATIONS[annotation]

    origin = typing.get_origin(annotation)
    if origin in (list, tuple) and typing.get_args(annotation)[:1] == (float,):
        return StorageType.VECTOR

    raise SchemaError(
        f"Field '{field_name}' has unsupported annotation {annotation!r}",
        {"field": field_name}
    )
