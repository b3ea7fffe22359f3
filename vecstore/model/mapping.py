"""
Compiled correspondence between record fields and storage columns.

A RecordMapping is produced once per collection by the ModelBuilder and is
immutable afterwards. It validates records on the write path and rebuilds
records from rows on the read path.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from ..core import MappingError
from .definition import DistanceFunction, StorageType


# Column type names declared in CREATE TABLE statements
SQL_TYPES = {
    StorageType.TEXT: "TEXT",
    StorageType.INTEGER: "INTEGER",
    StorageType.FLOAT: "REAL",
    StorageType.BOOLEAN: "BOOLEAN",
    StorageType.BYTES: "BLOB",
    StorageType.EMBEDDED_TEXT: "TEXT",
}


def vector_sql_type(dimensions: int) -> str:
    """Declared column type for a vector column."""
    return f"VECTOR({dimensions})"


def vector_to_blob(values: Any) -> bytes:
    """
    Pack a vector as little-endian float32 bytes, the sqlite-vec format.

    Args:
        values: Sequence of numbers or numpy array.

    Returns:
        Packed bytes representation.
    """
    return np.asarray(values, dtype="<f4").tobytes()


def blob_to_vector(blob: bytes) -> List[float]:
    """
    Unpack float32 bytes into a list of floats.

    Args:
        blob: Packed bytes from the database.

    Returns:
        List of floats.
    """
    return np.frombuffer(blob, dtype="<f4").astype(float).tolist()


@dataclass(frozen=True)
class FieldMapping:
    """
    Mapping of one record field onto its storage column(s).

    Attributes:
        field_name: Field name in records.
        column_name: Storage column holding the field value.
        storage_type: Semantic storage type.
        is_key: Whether the field is the collection key.
        is_vector: Whether the field can be searched by vector.
        dimensions: Vector length for vector fields.
        distance_function: Distance function for vector fields.
        embedding_column: Generated vector column for embedded text fields.
    """
    field_name: str
    column_name: str
    storage_type: StorageType
    is_key: bool = False
    is_vector: bool = False
    dimensions: Optional[int] = None
    distance_function: Optional[DistanceFunction] = None
    embedding_column: Optional[str] = None

    @property
    def needs_embedding(self) -> bool:
        return self.storage_type is StorageType.EMBEDDED_TEXT

    @property
    def vector_column(self) -> Optional[str]:
        """Column searched for this field, if it is a vector field."""
        if self.needs_embedding:
            return self.embedding_column
        if self.storage_type is StorageType.VECTOR:
            return self.column_name
        return None

    def columns(self) -> List[Tuple[str, str]]:
        """Storage (column name, declared SQL type) pairs for this field."""
        if self.storage_type is StorageType.VECTOR:
            return [(self.column_name, vector_sql_type(self.dimensions))]

        columns = [(self.column_name, SQL_TYPES[self.storage_type])]
        if self.needs_embedding:
            columns.append((self.embedding_column, vector_sql_type(self.dimensions)))
        return columns


class RecordMapping:
    """
    Immutable field-to-column mapping for one collection.

    Exposes the key field name, the ordered vector field names and the
    encode/decode operations used by every collection operation.
    """

    def __init__(self, fields: Sequence[FieldMapping]):
        """
        Initialize the mapping.

        Args:
            fields: Field mappings in definition order. Validation of
                uniqueness and key count is done by the ModelBuilder.
        """
        self._fields = MappingProxyType({f.field_name: f for f in fields})
        self._key_field = next(f.field_name for f in fields if f.is_key)
        self._vector_fields = tuple(f.field_name for f in fields if f.is_vector)

    @property
    def fields(self) -> Mapping[str, FieldMapping]:
        return self._fields

    @property
    def key_field(self) -> str:
        return self._key_field

    @property
    def key(self) -> FieldMapping:
        return self._fields[self._key_field]

    @property
    def vector_fields(self) -> Tuple[str, ...]:
        return self._vector_fields

    @property
    def embedded_fields(self) -> Tuple[str, ...]:
        """Fields whose text must pass through the embedding generator."""
        return tuple(name for name, f in self._fields.items() if f.needs_embedding)

    def __contains__(self, field_name: str) -> bool:
        return field_name in self._fields

    def __getitem__(self, field_name: str) -> FieldMapping:
        return self._fields[field_name]

    def __repr__(self) -> str:
        return f"RecordMapping(key={self._key_field!r}, fields={list(self._fields)!r})"

    def columns(self) -> List[Tuple[str, str]]:
        """All storage (column name, SQL type) pairs in definition order."""
        columns = []
        for field in self._fields.values():
            columns.extend(field.columns())
        return columns

    def read_columns(self) -> List[str]:
        """Columns read back into records; generated embeddings are excluded."""
        return [f.column_name for f in self._fields.values()]

    def validate_key(self, key: Any) -> Any:
        """
        Check that a key value fits the key column.

        Raises:
            MappingError: If the key is None or of the wrong kind.
        """
        if key is None:
            raise MappingError("Key value must not be None", field=self._key_field)
        return _encode_value(self.key, key)

    def encode_value(self, field_name: str, value: Any) -> Any:
        """
        Convert a single scalar field value to its storage form.

        Raises:
            MappingError: If the field is unknown or the value has the wrong kind.
        """
        if field_name not in self._fields:
            raise MappingError(f"Unknown field '{field_name}'", field=field_name)
        return _encode_value(self._fields[field_name], value)

    def encode(
        self,
        key: Any,
        record: Mapping[str, Any],
        embeddings: Optional[Mapping[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Validate a record and convert it to a column -> value row.

        Fields missing from the record are stored as NULL.

        Args:
            key: Key value for the row.
            record: Field name -> value mapping.
            embeddings: Generated vectors for embedded text fields.

        Returns:
            Column name -> storage value dictionary.

        Raises:
            MappingError: On unknown fields, wrong value kinds, wrong vector
                lengths or a record key that disagrees with ``key``.
        """
        key = self.validate_key(key)
        embeddings = embeddings or {}

        unknown = [name for name in record if name not in self._fields]
        if unknown:
            raise MappingError(
                f"Record has fields not in the collection schema: {', '.join(sorted(unknown))}",
                field=unknown[0],
                details={"unknown_fields": unknown}
            )

        if record.get(self._key_field) is not None and record[self._key_field] != key:
            raise MappingError(
                f"Record key {record[self._key_field]!r} does not match key argument {key!r}",
                field=self._key_field
            )

        row = {}
        for name, field in self._fields.items():
            if field.is_key:
                row[field.column_name] = key
                continue

            value = record.get(name)
            row[field.column_name] = _encode_value(field, value)

            if field.needs_embedding:
                vector = embeddings.get(name) if value is not None else None
                if vector is not None:
                    _check_vector_length(field, vector)
                    vector = vector_to_blob(vector)
                row[field.embedding_column] = vector

        return row

    def decode(self, row: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Rebuild a record from a storage row.

        Columns not known to the mapping are ignored.

        Args:
            row: Column name -> value mapping (sqlite3.Row or dict).

        Returns:
            Field name -> value record.
        """
        available = set(row.keys())
        record = {}

        for name, field in self._fields.items():
            if field.column_name not in available:
                continue
            value = row[field.column_name]

            if value is None:
                record[name] = None
            elif field.storage_type is StorageType.VECTOR:
                record[name] = blob_to_vector(value)
            elif field.storage_type is StorageType.BOOLEAN:
                record[name] = bool(value)
            elif field.storage_type is StorageType.FLOAT:
                record[name] = float(value)
            elif field.storage_type is StorageType.BYTES:
                record[name] = bytes(value)
            else:
                record[name] = value

        return record


def _encode_value(field: FieldMapping, value: Any) -> Any:
    if value is None:
        return None

    if field.storage_type is StorageType.VECTOR:
        _check_vector_length(field, value)
        return vector_to_blob(value)

    _check_scalar(field, value)

    # numpy scalars cannot be bound by sqlite3
    if field.storage_type is StorageType.BOOLEAN:
        return int(bool(value))
    if field.storage_type is StorageType.INTEGER:
        return int(value)
    if field.storage_type is StorageType.FLOAT:
        return float(value)
    if field.storage_type is StorageType.BYTES:
        return bytes(value)
    return value


def _check_scalar(field: FieldMapping, value: Any) -> None:
    storage_type = field.storage_type

    if storage_type in (StorageType.TEXT, StorageType.EMBEDDED_TEXT):
        ok = isinstance(value, str)
    elif storage_type is StorageType.INTEGER:
        ok = isinstance(value, (int, np.integer)) and not isinstance(value, bool)
    elif storage_type is StorageType.FLOAT:
        ok = isinstance(value, (int, float, np.number)) and not isinstance(value, bool)
    elif storage_type is StorageType.BOOLEAN:
        ok = isinstance(value, (bool, np.bool_))
    elif storage_type is StorageType.BYTES:
        ok = isinstance(value, (bytes, bytearray, memoryview))
    else:
        ok = False

    if not ok:
        raise MappingError(
            f"Field '{field.field_name}' expects {storage_type.value}, got {type(value).__name__}",
            field=field.field_name,
            details={"expected": storage_type.value, "actual": type(value).__name__}
        )


def _check_vector_length(field: FieldMapping, value: Any) -> None:
    if isinstance(value, (str, bytes)) or not hasattr(value, "__len__"):
        raise MappingError(
            f"Field '{field.field_name}' expects a vector of floats, got {type(value).__name__}",
            field=field.field_name
        )

    try:
        array = np.asarray(value, dtype=float)
    except (TypeError, ValueError):
        raise MappingError(
            f"Field '{field.field_name}' contains non-numeric vector elements",
            field=field.field_name
        )

    if array.ndim != 1 or array.shape[0] != field.dimensions:
        raise MappingError(
            f"Field '{field.field_name}' expects {field.dimensions} dimensions, got shape {array.shape}",
            field=field.field_name,
            details={"expected": field.dimensions, "actual": list(array.shape)}
        )
