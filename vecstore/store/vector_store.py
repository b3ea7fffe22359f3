"""
Vector store handing out collections that share one data source.
"""

import asyncio
import threading
from typing import List, Optional

from ..core import UseAfterDisposeError, get_logger
from ..database import ConnectionHandle, DataSource, create_data_source, drop_table, list_tables, table_exists
from ..embedding import EmbeddingGenerator
from ..model import SchemaDefinition
from .collection import Collection, CollectionOptions
from .dynamic import DynamicCollection

logger = get_logger(__name__)


class VectorStore:
    """
    Entry point for working with many collections in one database.

    The store holds one handle on the data source; every collection it
    creates retains its own reference, so the data source stays open until
    the store and all its collections are disposed.
    """

    def __init__(
        self,
        data_source: DataSource,
        owns_data_source: bool = False,
        embedding_generator: Optional[EmbeddingGenerator] = None
    ):
        """
        Initialize the store.

        Args:
            data_source: Shared data source.
            owns_data_source: Close the data source once the store and all
                its collections are disposed.
            embedding_generator: Default generator for collections created
                by this store.
        """
        self._handle = ConnectionHandle.acquire(data_source, owns_data_source)
        self.embedding_generator = embedding_generator
        self._lock = threading.Lock()
        self._disposed = False

    @classmethod
    def from_connection_string(
        cls,
        connection_string: str,
        embedding_generator: Optional[EmbeddingGenerator] = None
    ) -> "VectorStore":
        """Create a store owning a new data source built from a connection string."""
        return cls(
            create_data_source(connection_string),
            owns_data_source=True,
            embedding_generator=embedding_generator
        )

    def _check_open(self) -> None:
        if self._disposed:
            raise UseAfterDisposeError("Vector store has been disposed")

    def _options(self, definition: Optional[SchemaDefinition]) -> CollectionOptions:
        return CollectionOptions(definition=definition, embedding_generator=self.embedding_generator)

    def get_collection(
        self,
        name: str,
        record_type: type,
        definition: Optional[SchemaDefinition] = None
    ) -> Collection:
        """Create a typed collection sharing this store's data source."""
        self._check_open()
        return Collection._from_handle(self._handle, name, self._options(definition), record_type)

    def get_dynamic_collection(self, name: str, definition: SchemaDefinition) -> DynamicCollection:
        """Create a dynamic collection sharing this store's data source."""
        self._check_open()
        return DynamicCollection._from_handle(self._handle, name, self._options(definition))

    async def _run_on_connection(self, func, *args):
        self._check_open()
        data_source = self._handle.resource

        def work():
            with data_source.connection() as conn:
                return func(conn, *args)

        return await asyncio.get_running_loop().run_in_executor(None, work)

    async def list_collection_names(self) -> List[str]:
        """Names of all tables in the database."""
        return await self._run_on_connection(list_tables)

    async def collection_exists(self, name: str) -> bool:
        return await self._run_on_connection(table_exists, name)

    async def ensure_collection_deleted(self, name: str) -> None:
        await self._run_on_connection(drop_table, name)

    def dispose(self) -> None:
        """Release the store's reference; collections already created stay usable."""
        with self._lock:
            if self._disposed:
                return
            self._disposed = True
        self._handle.release()
        logger.debug("Vector store disposed")

    def __enter__(self) -> "VectorStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()
