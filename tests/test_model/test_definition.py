"""
Tests for runtime schema definitions.
"""

import pytest
from dataclasses import dataclass, field
from typing import List, Optional

from vecstore.core.exceptions import SchemaError
from vecstore.model import DistanceFunction, FieldDefinition, SchemaDefinition, StorageType


class TestFieldDefinition:
    """Tests for FieldDefinition."""

    def test_defaults(self):
        definition = FieldDefinition("title", StorageType.TEXT)

        assert definition.is_key is False
        assert definition.vector_dimensions is None
        assert definition.distance_function is None
        assert definition.storage_name is None

    def test_string_enums_are_coerced(self):
        definition = FieldDefinition("embedding", "vector", vector_dimensions=3, distance_function="dot")

        assert definition.storage_type is StorageType.VECTOR
        assert definition.distance_function is DistanceFunction.DOT

    def test_unknown_storage_type_raises(self):
        with pytest.raises(SchemaError):
            FieldDefinition("title", "varchar")

    def test_shorthands(self):
        key = FieldDefinition.key("id", StorageType.INTEGER)
        vector = FieldDefinition.vector("embedding", 8, DistanceFunction.EUCLIDEAN)

        assert key.is_key and key.storage_type is StorageType.INTEGER
        assert vector.storage_type is StorageType.VECTOR
        assert vector.vector_dimensions == 8
        assert vector.distance_function is DistanceFunction.EUCLIDEAN

    def test_is_frozen(self):
        definition = FieldDefinition("title", StorageType.TEXT)

        with pytest.raises(AttributeError):
            definition.name = "other"

    def test_vector_types(self):
        assert StorageType.VECTOR.is_vector
        assert StorageType.EMBEDDED_TEXT.is_vector
        assert not StorageType.TEXT.is_vector


class TestSchemaDefinition:
    """Tests for SchemaDefinition."""

    def test_keeps_order(self, book_definition):
        assert [f.name for f in book_definition] == ["id", "title", "embedding"]
        assert len(book_definition) == 3

    def test_accepts_any_iterable(self):
        definition = SchemaDefinition(f for f in [FieldDefinition.key("id")])

        assert isinstance(definition.fields, tuple)
        assert len(definition) == 1

    def test_key_fields(self, book_definition):
        assert [f.name for f in book_definition.key_fields] == ["id"]


@dataclass
class Paper:
    id: str = field(metadata={"key": True})
    title: str
    year: Optional[int]
    score: float
    published: bool
    embedding: List[float] = field(metadata={"dimensions": 4, "distance": "euclidean"})
    abstract: str = field(default="", metadata={"storage_type": "embedded_text", "dimensions": 4})


class TestFromDataclass:
    """Tests for deriving definitions from dataclasses."""

    def test_field_types(self):
        definition = SchemaDefinition.from_dataclass(Paper)
        by_name = {f.name: f for f in definition}

        assert by_name["id"].is_key
        assert by_name["title"].storage_type is StorageType.TEXT
        assert by_name["year"].storage_type is StorageType.INTEGER
        assert by_name["score"].storage_type is StorageType.FLOAT
        assert by_name["published"].storage_type is StorageType.BOOLEAN
        assert by_name["embedding"].storage_type is StorageType.VECTOR
        assert by_name["embedding"].vector_dimensions == 4
        assert by_name["embedding"].distance_function is DistanceFunction.EUCLIDEAN
        assert by_name["abstract"].storage_type is StorageType.EMBEDDED_TEXT

    def test_not_a_dataclass_raises(self):
        with pytest.raises(SchemaError):
            SchemaDefinition.from_dataclass(dict)

    def test_unsupported_annotation_raises(self):
        @dataclass
        class Bad:
            id: str = field(metadata={"key": True})
            tags: dict = None

        with pytest.raises(SchemaError) as exc_info:
            SchemaDefinition.from_dataclass(Bad)

        assert exc_info.value.details["field"] == "tags"
