"""
Collections of dynamic records.

A dynamic record is a plain ``dict`` mapping field names to values. With no
static type to derive a schema from, the definition must be supplied.
"""

from typing import Any, Dict, Optional

from ..database import DataSource, create_data_source
from ..model import ModelBuilder
from .collection import Collection, CollectionOptions


class DynamicCollection(Collection[Any, Dict[str, Any]]):
    """Collection whose records are ``dict`` instances shaped by a SchemaDefinition."""

    def __init__(
        self,
        data_source: DataSource,
        name: str,
        owns_data_source: bool = False,
        options: Optional[CollectionOptions] = None
    ):
        """
        Initialize a dynamic collection on an existing data source.

        Args:
            data_source: Data source to run statements on.
            name: Collection (and table) name.
            owns_data_source: Close the data source when the last collection
                referencing it is disposed.
            options: Must carry a definition.

        Raises:
            SchemaError: If no definition is supplied or it is invalid.
        """
        super().__init__(data_source, name, dict, owns_data_source, options)

    @classmethod
    def from_connection_string(
        cls,
        connection_string: str,
        name: str,
        options: Optional[CollectionOptions] = None
    ) -> "DynamicCollection":
        """Create a dynamic collection owning a new data source built from a connection string."""
        return cls(
            create_data_source(connection_string), name,
            owns_data_source=True, options=options
        )

    def _build_mapping(self, options: CollectionOptions):
        return ModelBuilder().build(options.definition, options.embedding_generator)
