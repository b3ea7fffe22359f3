"""
Model builder turning schema definitions into record mappings.
"""

import re
from typing import Optional

from ..core import SchemaError, get_logger
from ..embedding import EmbeddingGenerator
from .definition import DistanceFunction, SchemaDefinition, StorageType
from .mapping import FieldMapping, RecordMapping

logger = get_logger(__name__)

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

EMBEDDING_COLUMN_SUFFIX = "_embedding"

KEY_STORAGE_TYPES = (StorageType.TEXT, StorageType.INTEGER)


class ModelBuilder:
    """
    Compiles a SchemaDefinition into a RecordMapping.

    Building is pure: no I/O happens and the resulting mapping is immutable.
    """

    def build(
        self,
        definition: Optional[SchemaDefinition],
        embedding_generator: Optional[EmbeddingGenerator] = None
    ) -> RecordMapping:
        """
        Build a record mapping for a dynamic collection.

        Args:
            definition: Field definitions. Required, since dynamic records
                carry no static type to derive a schema from.
            embedding_generator: Capability used to populate the vector
                columns of embedded text fields.

        Returns:
            Compiled RecordMapping.

        Raises:
            SchemaError: If the definition is missing or invalid.
        """
        if definition is None:
            raise SchemaError("Definition is required for dynamic collections")

        if len(definition) == 0:
            raise SchemaError("Definition has no fields")

        key_fields = definition.key_fields
        if len(key_fields) != 1:
            raise SchemaError(
                f"Definition must have exactly one key field, found {len(key_fields)}",
                {"key_fields": [f.name for f in key_fields]}
            )

        mappings = []
        seen_fields = set()
        seen_columns = set()

        for field in definition:
            _check_identifier(field.name, "field name")
            if field.name in seen_fields:
                raise SchemaError(f"Duplicate field name '{field.name}'", {"field": field.name})
            seen_fields.add(field.name)

            column_name = field.storage_name or field.name
            _check_identifier(column_name, "storage name")

            if field.is_key and field.storage_type not in KEY_STORAGE_TYPES:
                raise SchemaError(
                    f"Key field '{field.name}' must be text or integer, not {field.storage_type.value}",
                    {"field": field.name}
                )

            is_vector = field.storage_type.is_vector
            embedding_column = None

            if is_vector:
                if field.is_key:
                    raise SchemaError(f"Vector field '{field.name}' cannot be the key")
                if not isinstance(field.vector_dimensions, int) or field.vector_dimensions <= 0:
                    raise SchemaError(
                        f"Vector field '{field.name}' needs positive dimensions, got {field.vector_dimensions!r}",
                        {"field": field.name}
                    )
                if field.storage_type is StorageType.EMBEDDED_TEXT:
                    if embedding_generator is None:
                        raise SchemaError(
                            f"Field '{field.name}' is embedded text but no embedding generator was configured",
                            {"field": field.name}
                        )
                    embedding_column = column_name + EMBEDDING_COLUMN_SUFFIX
            elif field.vector_dimensions is not None or field.distance_function is not None:
                raise SchemaError(
                    f"Scalar field '{field.name}' cannot declare vector dimensions or a distance function",
                    {"field": field.name}
                )

            for column in (column_name, embedding_column):
                if column is None:
                    continue
                if column.lower() in seen_columns:
                    raise SchemaError(
                        f"Storage column '{column}' is used by more than one field",
                        {"column": column}
                    )
                seen_columns.add(column.lower())

            mappings.append(FieldMapping(
                field_name=field.name,
                column_name=column_name,
                storage_type=field.storage_type,
                is_key=field.is_key,
                is_vector=is_vector,
                dimensions=field.vector_dimensions if is_vector else None,
                distance_function=(field.distance_function or DistanceFunction.COSINE) if is_vector else None,
                embedding_column=embedding_column,
            ))

        mapping = RecordMapping(mappings)
        logger.debug(f"Built {mapping!r}")
        return mapping

    def build_for_type(
        self,
        record_type: type,
        definition: Optional[SchemaDefinition] = None,
        embedding_generator: Optional[EmbeddingGenerator] = None
    ) -> RecordMapping:
        """
        Build a record mapping for a typed collection.

        Uses the explicit definition when given, otherwise derives one
        from the dataclass record type.
        """
        if definition is None:
            definition = SchemaDefinition.from_dataclass(record_type)
        return self.build(definition, embedding_generator)


def _check_identifier(name: str, what: str) -> None:
    if not isinstance(name, str) or not IDENTIFIER_PATTERN.match(name):
        raise SchemaError(f"Invalid {what} {name!r}", {"name": name})
