"""
Tests for the model builder.

Tests compiling definitions into record mappings and every rejection rule.
"""

import pytest

from vecstore.core.exceptions import SchemaError
from vecstore.model import DistanceFunction, FieldDefinition, ModelBuilder, SchemaDefinition, StorageType


def build(*fields, generator=None):
    return ModelBuilder().build(SchemaDefinition(fields), generator)


class TestBuild:
    """Tests for valid definitions."""

    def test_book_mapping(self, book_definition):
        mapping = ModelBuilder().build(book_definition)

        assert mapping.key_field == "id"
        assert mapping.vector_fields == ("embedding",)
        assert mapping["embedding"].dimensions == 3
        assert mapping["embedding"].distance_function is DistanceFunction.COSINE
        assert mapping.columns() == [("id", "TEXT"), ("title", "TEXT"), ("embedding", "VECTOR(3)")]

    def test_distance_defaults_to_cosine(self):
        mapping = build(
            FieldDefinition.key("id"),
            FieldDefinition("embedding", StorageType.VECTOR, vector_dimensions=2),
        )

        assert mapping["embedding"].distance_function is DistanceFunction.COSINE

    def test_vector_fields_in_definition_order(self):
        mapping = build(
            FieldDefinition.vector("b", 2),
            FieldDefinition.key("id"),
            FieldDefinition.vector("a", 2, DistanceFunction.DOT),
        )

        assert mapping.vector_fields == ("b", "a")

    def test_embedded_text_gets_generated_column(self, embedding_generator):
        mapping = build(
            FieldDefinition.key("id"),
            FieldDefinition("summary", StorageType.EMBEDDED_TEXT, vector_dimensions=4),
            generator=embedding_generator,
        )

        summary = mapping["summary"]
        assert summary.embedding_column == "summary_embedding"
        assert summary.vector_column == "summary_embedding"
        assert mapping.embedded_fields == ("summary",)
        assert mapping.vector_fields == ("summary",)
        assert ("summary_embedding", "VECTOR(4)") in mapping.columns()
        assert "summary_embedding" not in mapping.read_columns()

    def test_build_for_type_prefers_explicit_definition(self, book_definition):
        mapping = ModelBuilder().build_for_type(dict, book_definition)

        assert mapping.key_field == "id"


class TestBuildRejects:
    """Tests for invalid definitions."""

    def test_missing_definition(self):
        with pytest.raises(SchemaError) as exc_info:
            ModelBuilder().build(None)

        assert "required" in exc_info.value.message

    def test_empty_definition(self):
        with pytest.raises(SchemaError):
            build()

    def test_no_key(self):
        with pytest.raises(SchemaError):
            build(FieldDefinition("title", StorageType.TEXT))

    def test_two_keys(self):
        with pytest.raises(SchemaError) as exc_info:
            build(FieldDefinition.key("a"), FieldDefinition.key("b"))

        assert exc_info.value.details["key_fields"] == ["a", "b"]

    @pytest.mark.parametrize("name", ["", "1abc", "has space", "semi;colon"])
    def test_invalid_field_name(self, name):
        with pytest.raises(SchemaError):
            build(FieldDefinition.key("id"), FieldDefinition(name, StorageType.TEXT))

    def test_duplicate_field_name(self):
        with pytest.raises(SchemaError):
            build(
                FieldDefinition.key("id"),
                FieldDefinition("title", StorageType.TEXT),
                FieldDefinition("title", StorageType.INTEGER),
            )

    def test_duplicate_storage_column(self):
        with pytest.raises(SchemaError):
            build(
                FieldDefinition.key("id"),
                FieldDefinition("title", StorageType.TEXT),
                FieldDefinition("name", StorageType.TEXT, storage_name="TITLE"),
            )

    def test_generated_column_collision(self, embedding_generator):
        with pytest.raises(SchemaError):
            build(
                FieldDefinition.key("id"),
                FieldDefinition("summary", StorageType.EMBEDDED_TEXT, vector_dimensions=4),
                FieldDefinition.vector("summary_embedding", 4),
                generator=embedding_generator,
            )

    def test_vector_key(self):
        with pytest.raises(SchemaError):
            build(FieldDefinition("id", StorageType.VECTOR, is_key=True, vector_dimensions=3))

    def test_float_key(self):
        with pytest.raises(SchemaError):
            build(FieldDefinition("id", StorageType.FLOAT, is_key=True))

    @pytest.mark.parametrize("dimensions", [None, 0, -1])
    def test_vector_without_positive_dimensions(self, dimensions):
        with pytest.raises(SchemaError):
            build(
                FieldDefinition.key("id"),
                FieldDefinition("embedding", StorageType.VECTOR, vector_dimensions=dimensions),
            )

    def test_embedded_text_without_generator(self):
        with pytest.raises(SchemaError):
            build(
                FieldDefinition.key("id"),
                FieldDefinition("summary", StorageType.EMBEDDED_TEXT, vector_dimensions=4),
            )

    def test_scalar_with_vector_options(self):
        with pytest.raises(SchemaError):
            build(
                FieldDefinition.key("id"),
                FieldDefinition("title", StorageType.TEXT, distance_function=DistanceFunction.DOT),
            )
