"""
Custom exception hierarchy for vecstore.

Provides specific exception types for different failure modes:
configuration errors, database issues, schema and record mapping
problems, invalid arguments and use of disposed collections.
"""


class VecStoreError(Exception):
    """Base exception for all vecstore errors."""

    def __init__(self, message: str, details: dict = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(VecStoreError):
    """Raised when configuration is invalid or missing."""
    pass


class DatabaseError(VecStoreError):
    """Raised when the backing SQLite data source cannot be used."""
    pass


class SchemaError(VecStoreError):
    """Raised when a schema definition is missing or invalid."""
    pass


class MappingError(VecStoreError):
    """Raised when a record does not fit the collection's record mapping."""

    def __init__(self, message: str, field: str = None, details: dict = None):
        """
        Initialize mapping error.

        Args:
            message: Error description.
            field: Name of the offending record field.
            details: Additional context.
        """
        super().__init__(message, details)
        self.field = field


class SchemaMismatchError(VecStoreError):
    """Raised when an existing table is incompatible with the record mapping."""

    def __init__(self, message: str, collection: str = None, details: dict = None):
        """
        Initialize schema mismatch error.

        Args:
            message: Error description.
            collection: Name of the conflicting collection table.
            details: Additional context.
        """
        super().__init__(message, details)
        self.collection = collection


class InvalidArgumentError(VecStoreError):
    """Raised when an operation receives an invalid argument."""
    pass


class UseAfterDisposeError(VecStoreError):
    """Raised when a disposed collection or connection handle is used."""
    pass


class EmbeddingError(VecStoreError):
    """Raised when the embedding generator fails to produce vectors."""
    pass
