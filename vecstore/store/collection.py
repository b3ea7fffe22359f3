"""
Schema-mapped collections backed by one SQLite table each.

A Collection owns a RecordMapping and one reference to a shared
ConnectionHandle. Every data operation is a coroutine; the blocking SQLite
work runs on the event loop's default executor. Writes to one key from
concurrent callers are not serialized here: the last commit wins.
"""

import asyncio
import dataclasses
import functools
import threading
from dataclasses import dataclass
from enum import Enum
from typing import (
    Any,
    Dict,
    Generic,
    Iterable,
    List,
    Mapping,
    NamedTuple,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
)

import numpy as np

from ..core import (
    EmbeddingError,
    InvalidArgumentError,
    MappingError,
    UseAfterDisposeError,
    get_logger,
)
from ..database import (
    ConnectionHandle,
    DataSource,
    create_data_source,
    drop_table,
    ensure_table,
    quote_identifier,
    table_exists,
)
from ..embedding import EmbeddingGenerator
from ..model import DistanceFunction, FieldMapping, ModelBuilder, SchemaDefinition, vector_to_blob
from ..model.builder import IDENTIFIER_PATTERN

logger = get_logger(__name__)

TKey = TypeVar("TKey")
TRecord = TypeVar("TRecord")

# SQLite's historical bound on host parameters is 999
MAX_KEYS_PER_STATEMENT = 500

SCORE_COLUMN = "__vecstore_score"

# Higher score means more similar for every distance function
SCORE_SQL = {
    DistanceFunction.COSINE: "1.0 - vec_distance_cosine({column}, ?)",
    DistanceFunction.EUCLIDEAN: "1.0 / (1.0 + vec_distance_l2({column}, ?))",
    DistanceFunction.DOT: "vs_dot_product({column}, ?)",
}


class CollectionState(Enum):
    CREATED = "created"
    READY = "ready"
    DISPOSED = "disposed"


@dataclass(frozen=True)
class CollectionOptions:
    """
    Construction options for a collection.

    Attributes:
        definition: Field definitions. Required for dynamic collections,
            derived from the dataclass record type otherwise.
        embedding_generator: Capability populating embedded text fields
            and embedding string search queries.
    """
    definition: Optional[SchemaDefinition] = None
    embedding_generator: Optional[EmbeddingGenerator] = None


class SearchResult(NamedTuple):
    """A record returned by vector search with its similarity score."""
    record: Any
    score: float


class Collection(Generic[TKey, TRecord]):
    """
    Collection of records of type ``TRecord`` keyed by ``TKey``.

    Records are dataclass instances or mappings. Construct with a
    DataSource, via ``from_connection_string``, or obtain one from a
    VectorStore to share its data source.
    """

    def __init__(
        self,
        data_source: DataSource,
        name: str,
        record_type: type,
        owns_data_source: bool = False,
        options: Optional[CollectionOptions] = None
    ):
        """
        Initialize a collection on an existing data source.

        Args:
            data_source: Data source to run statements on.
            name: Collection (and table) name.
            record_type: Dataclass type of the records.
            owns_data_source: Close the data source when the last collection
                referencing it is disposed.
            options: Definition and embedding generator.
        """
        if data_source is None:
            raise InvalidArgumentError("data_source must not be None")
        self._initialize(
            ConnectionHandle.acquire(data_source, owns_data_source), name, record_type, options
        )

    @classmethod
    def from_connection_string(
        cls,
        connection_string: str,
        name: str,
        record_type: type,
        options: Optional[CollectionOptions] = None
    ) -> "Collection":
        """Create a collection owning a new data source built from a connection string."""
        return cls(
            create_data_source(connection_string), name, record_type,
            owns_data_source=True, options=options
        )

    @classmethod
    def _from_handle(
        cls,
        handle: ConnectionHandle,
        name: str,
        options: Optional[CollectionOptions] = None,
        record_type: type = dict
    ) -> "Collection":
        """Create a collection sharing an existing handle's data source."""
        collection = cls.__new__(cls)
        collection._initialize(handle.retain(), name, record_type, options)
        return collection

    def _initialize(
        self,
        handle: ConnectionHandle,
        name: str,
        record_type: type,
        options: Optional[CollectionOptions]
    ) -> None:
        self._state = CollectionState.CREATED
        self._state_lock = threading.Lock()
        self._handle = handle

        try:
            if not isinstance(name, str) or not IDENTIFIER_PATTERN.match(name) or name.lower().startswith("sqlite_"):
                raise InvalidArgumentError(f"Invalid collection name {name!r}", {"name": name})

            self.name = name
            self.options = options or CollectionOptions()
            self.record_type = record_type
            self._mapping = self._build_mapping(self.options)
        except Exception:
            handle.release()
            raise

        self._state = CollectionState.READY
        logger.debug(f"Collection '{name}' ready")

    def _build_mapping(self, options: CollectionOptions):
        return ModelBuilder().build_for_type(
            self.record_type, options.definition, options.embedding_generator
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, state={self._state.value})"

    @property
    def mapping(self):
        return self._mapping

    @property
    def state(self) -> CollectionState:
        return self._state

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def dispose(self) -> None:
        """
        Release this collection's reference to its data source.

        The data source is closed only when no other collection references it
        and it is owned. Calling dispose again does nothing.
        """
        with self._state_lock:
            if self._state is CollectionState.DISPOSED:
                return
            self._state = CollectionState.DISPOSED

        self._handle.release()
        logger.debug(f"Collection '{self.name}' disposed")

    def __enter__(self) -> "Collection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    async def __aenter__(self) -> "Collection":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    def _data_source(self) -> DataSource:
        if self._state is not CollectionState.READY:
            raise UseAfterDisposeError(
                f"Collection '{self.name}' has been disposed", {"collection": self.name}
            )
        return self._handle.resource

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args))

    # =========================================================================
    # Table management
    # =========================================================================

    async def ensure_exists(self) -> None:
        """
        Create the backing table if absent.

        Raises:
            SchemaMismatchError: If an existing table conflicts with the mapping.
        """
        data_source = self._data_source()

        def work():
            with data_source.connection() as conn:
                ensure_table(conn, self.name, self._mapping)

        await self._run(work)

    async def exists(self) -> bool:
        """Check whether the backing table exists."""
        data_source = self._data_source()

        def work():
            with data_source.connection() as conn:
                return table_exists(conn, self.name)

        return await self._run(work)

    async def ensure_deleted(self) -> None:
        """Drop the backing table and all its rows, if present."""
        data_source = self._data_source()

        def work():
            with data_source.connection() as conn:
                drop_table(conn, self.name)

        await self._run(work)

    # =========================================================================
    # Record operations
    # =========================================================================

    async def upsert(self, key: TKey, record: TRecord) -> None:
        """
        Insert or replace the record stored under ``key``.

        Raises:
            MappingError: If the record does not fit the mapping.
        """
        await self.upsert_batch([(key, record)])

    async def upsert_batch(self, items: Iterable[Tuple[TKey, TRecord]]) -> int:
        """
        Insert or replace several records in one transaction.

        Args:
            items: (key, record) pairs.

        Returns:
            Number of records written.
        """
        data_source = self._data_source()
        pending = [(key, self._to_fields(record)) for key, record in items]
        if not pending:
            return 0

        # Validate before spending embedding calls
        for key, fields in pending:
            self._mapping.encode(key, fields)

        embeddings = await self._generate_embeddings([fields for _, fields in pending])
        rows = [
            self._mapping.encode(key, fields, generated)
            for (key, fields), generated in zip(pending, embeddings)
        ]

        columns = [column for column, _ in self._mapping.columns()]
        sql = (
            f"INSERT OR REPLACE INTO {quote_identifier(self.name)} "
            f"({', '.join(quote_identifier(c) for c in columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)})"
        )
        params = [tuple(row[c] for c in columns) for row in rows]

        def work():
            with data_source.cursor() as cur:
                cur.executemany(sql, params)

        await self._run(work)
        logger.debug(f"Upserted {len(rows)} record(s) into '{self.name}'")
        return len(rows)

    async def get(self, key: TKey) -> Optional[TRecord]:
        """
        Fetch the record stored under ``key``.

        Returns:
            The record including its key field, or None if absent.
        """
        records = await self.get_batch([key])
        return records[0] if records else None

    async def get_batch(self, keys: Sequence[TKey]) -> List[TRecord]:
        """
        Fetch several records.

        Returns:
            Records found, in the order of ``keys``; missing keys are skipped.
        """
        data_source = self._data_source()
        keys = [self._mapping.validate_key(key) for key in keys]
        if not keys:
            return []

        key_column = quote_identifier(self._mapping.key.column_name)
        select = self._select_columns_sql()

        def work():
            found = {}
            with data_source.connection() as conn:
                for start in range(0, len(keys), MAX_KEYS_PER_STATEMENT):
                    chunk = keys[start:start + MAX_KEYS_PER_STATEMENT]
                    rows = conn.execute(
                        f"SELECT {select} FROM {quote_identifier(self.name)} "
                        f"WHERE {key_column} IN ({', '.join('?' for _ in chunk)})",
                        chunk
                    ).fetchall()
                    for row in rows:
                        found[row[self._mapping.key.column_name]] = self._mapping.decode(row)
            return found

        found = await self._run(work)
        return [self._from_fields(found[key]) for key in keys if key in found]

    async def delete(self, key: TKey) -> None:
        """Delete the record stored under ``key``; absent keys are ignored."""
        await self.delete_batch([key])

    async def delete_batch(self, keys: Sequence[TKey]) -> int:
        """
        Delete several records in one transaction.

        Returns:
            Number of rows actually removed.
        """
        data_source = self._data_source()
        keys = [self._mapping.validate_key(key) for key in keys]
        if not keys:
            return 0

        key_column = quote_identifier(self._mapping.key.column_name)

        def work():
            deleted = 0
            with data_source.cursor() as cur:
                for start in range(0, len(keys), MAX_KEYS_PER_STATEMENT):
                    chunk = keys[start:start + MAX_KEYS_PER_STATEMENT]
                    cur.execute(
                        f"DELETE FROM {quote_identifier(self.name)} "
                        f"WHERE {key_column} IN ({', '.join('?' for _ in chunk)})",
                        chunk
                    )
                    deleted += cur.rowcount
            return deleted

        return await self._run(work)

    # =========================================================================
    # Vector search
    # =========================================================================

    async def search(
        self,
        query: Any,
        top_k: int,
        filter: Optional[Mapping[str, Any]] = None,
        vector_field: Optional[str] = None,
        skip: int = 0
    ) -> List[SearchResult]:
        """
        Find the records nearest to a query vector.

        Args:
            query: Query vector, or text when an embedding generator is configured.
            top_k: Maximum number of results, must be positive.
            filter: Equality conditions ``{field: value}`` on scalar fields.
            vector_field: Field to search; optional when only one exists.
            skip: Number of leading results to skip.

        Returns:
            SearchResult list ordered by descending score. Tie order is
            unspecified.

        Raises:
            InvalidArgumentError: On invalid top_k, skip, field, filter or query.
        """
        data_source = self._data_source()

        if isinstance(top_k, bool) or not isinstance(top_k, int) or top_k <= 0:
            raise InvalidArgumentError(f"top_k must be a positive integer, got {top_k!r}")
        if isinstance(skip, bool) or not isinstance(skip, int) or skip < 0:
            raise InvalidArgumentError(f"skip must be a non-negative integer, got {skip!r}")

        field = self._resolve_vector_field(vector_field)
        where, filter_params = self._filter_sql(filter)
        vector = await self._query_vector(query, field)

        vector_column = quote_identifier(field.vector_column)
        score_sql = SCORE_SQL[field.distance_function].format(column=vector_column)
        # Cosine distance is undefined (NULL) for zero-norm stored vectors; such rows are skipped
        sql = (
            f"SELECT * FROM ("
            f"SELECT {self._select_columns_sql()}, {score_sql} AS {SCORE_COLUMN} "
            f"FROM {quote_identifier(self.name)} "
            f"WHERE {vector_column} IS NOT NULL{where}"
            f") WHERE {SCORE_COLUMN} IS NOT NULL "
            f"ORDER BY {SCORE_COLUMN} DESC LIMIT ? OFFSET ?"
        )
        params = [vector_to_blob(vector), *filter_params, top_k, skip]

        def work():
            with data_source.connection() as conn:
                return [
                    (self._mapping.decode(row), float(row[SCORE_COLUMN]))
                    for row in conn.execute(sql, params).fetchall()
                ]

        rows = await self._run(work)
        return [SearchResult(self._from_fields(fields), score) for fields, score in rows]

    def _resolve_vector_field(self, vector_field: Optional[str]) -> FieldMapping:
        vector_fields = self._mapping.vector_fields

        if vector_field is None:
            if len(vector_fields) != 1:
                raise InvalidArgumentError(
                    f"Collection '{self.name}' has {len(vector_fields)} vector fields; "
                    "pass vector_field to choose one",
                    {"vector_fields": list(vector_fields)}
                )
            vector_field = vector_fields[0]

        if vector_field not in vector_fields:
            raise InvalidArgumentError(
                f"'{vector_field}' is not a vector field of collection '{self.name}'",
                {"vector_fields": list(vector_fields)}
            )
        return self._mapping[vector_field]

    def _filter_sql(self, filter: Optional[Mapping[str, Any]]) -> Tuple[str, List[Any]]:
        if not filter:
            return "", []

        clauses = []
        params = []
        for name, value in filter.items():
            if name not in self._mapping or self._mapping[name].storage_type.is_vector:
                raise InvalidArgumentError(
                    f"Cannot filter on '{name}': not a scalar field of collection '{self.name}'"
                )
            column = quote_identifier(self._mapping[name].column_name)
            if value is None:
                clauses.append(f"{column} IS NULL")
                continue
            try:
                params.append(self._mapping.encode_value(name, value))
            except MappingError as e:
                raise InvalidArgumentError(f"Invalid filter value: {e.message}") from e
            clauses.append(f"{column} = ?")

        return "".join(f" AND {clause}" for clause in clauses), params

    async def _query_vector(self, query: Any, field: FieldMapping) -> np.ndarray:
        if isinstance(query, str):
            generator = self.options.embedding_generator
            if generator is None:
                raise InvalidArgumentError(
                    "Text queries need an embedding generator; pass a vector instead"
                )
            vectors = await generator.generate([query])
            if len(vectors) != 1:
                raise EmbeddingError(f"Embedding generator returned {len(vectors)} vectors for 1 query")
            query = vectors[0]

        try:
            vector = np.asarray(query, dtype=float)
        except (TypeError, ValueError):
            raise InvalidArgumentError("Query must be a vector of numbers")

        if vector.ndim != 1 or vector.shape[0] != field.dimensions:
            raise InvalidArgumentError(
                f"Query vector has shape {vector.shape}, field '{field.field_name}' "
                f"expects {field.dimensions} dimensions"
            )
        if field.distance_function is DistanceFunction.COSINE and not np.any(vector):
            raise InvalidArgumentError(
                f"Cosine search on '{field.field_name}' needs a non-zero query vector"
            )
        return vector

    # =========================================================================
    # Record conversion
    # =========================================================================

    def _select_columns_sql(self) -> str:
        return ", ".join(quote_identifier(c) for c in self._mapping.read_columns())

    async def _generate_embeddings(self, records: List[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        """Embed the text of embedded text fields, one generator call per field."""
        generated: List[Dict[str, Any]] = [{} for _ in records]
        generator = self.options.embedding_generator

        for name in self._mapping.embedded_fields:
            positions = [i for i, fields in enumerate(records) if fields.get(name) is not None]
            if not positions:
                continue

            vectors = await generator.generate([records[i][name] for i in positions])
            if len(vectors) != len(positions):
                raise EmbeddingError(
                    f"Embedding generator returned {len(vectors)} vectors for {len(positions)} texts",
                    {"field": name}
                )
            for i, vector in zip(positions, vectors):
                generated[i][name] = vector

        return generated

    def _to_fields(self, record: Any) -> Mapping[str, Any]:
        if dataclasses.is_dataclass(record) and not isinstance(record, type):
            return {f.name: getattr(record, f.name) for f in dataclasses.fields(record)}
        if isinstance(record, Mapping):
            return record
        raise MappingError(
            f"Records must be dataclass instances or mappings, got {type(record).__name__}"
        )

    def _from_fields(self, fields: Dict[str, Any]) -> Any:
        if dataclasses.is_dataclass(self.record_type):
            names = {f.name for f in dataclasses.fields(self.record_type)}
            return self.record_type(**{k: v for k, v in fields.items() if k in names})
        return fields
