"""
SQLite data source for vecstore collections.

A DataSource is the physical, expensive-to-create resource shared by
collections: a small pool of connections to one database file, each with
WAL mode enabled and the sqlite-vec extension loaded.
"""

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, List, Optional, Union
from urllib.parse import parse_qs, urlparse

import numpy as np
import sqlite_vec

from ..core import DatabaseError, get_config_or_defaults, get_logger

logger = get_logger(__name__)

SQLITE_SCHEME = "sqlite"


def _dot_product(a: bytes, b: bytes) -> Optional[float]:
    """SQL function: dot product of two float32 vector blobs."""
    if a is None or b is None:
        return None
    return float(np.dot(np.frombuffer(a, dtype="<f4"), np.frombuffer(b, dtype="<f4")))


class DataSource:
    """
    Pool of SQLite connections to one database file.

    Connections are created on demand up to ``pool_size`` idle connections
    kept for reuse. Once closed, the data source rejects new checkouts.
    """

    def __init__(
        self,
        db_path: Union[str, Path] = None,
        pool_size: int = None,
        timeout: float = None,
        journal_mode: str = None
    ):
        """
        Initialize the data source.

        Args:
            db_path: Path to SQLite database file. Defaults to config value.
            pool_size: Maximum number of idle connections kept open.
            timeout: Seconds to wait on a locked database.
            journal_mode: SQLite journal mode, WAL by default.
        """
        config = get_config_or_defaults()
        self.db_path = Path(db_path or config.paths.database_path)
        self.pool_size = pool_size or config.database.pool_size
        self.timeout = timeout if timeout is not None else config.database.timeout
        self.journal_mode = journal_mode or config.database.journal_mode

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        self._idle: List[sqlite3.Connection] = []
        self._closed = False

    def __repr__(self) -> str:
        return f"DataSource({str(self.db_path)!r}, closed={self._closed})"

    @property
    def closed(self) -> bool:
        return self._closed

    def _create_connection(self) -> sqlite3.Connection:
        """Create a new database connection with vector support."""
        try:
            conn = sqlite3.connect(
                self.db_path,
                check_same_thread=False,
                timeout=self.timeout
            )
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to connect to database: {e}", {"path": str(self.db_path)})

        try:
            conn.row_factory = sqlite3.Row

            conn.execute(f"PRAGMA journal_mode={self.journal_mode}")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.execute("PRAGMA temp_store=MEMORY")

            conn.enable_load_extension(True)
            sqlite_vec.load(conn)
            conn.enable_load_extension(False)

            conn.create_function("vs_dot_product", 2, _dot_product, deterministic=True)
        except (sqlite3.Error, AttributeError) as e:
            conn.close()
            raise DatabaseError(
                f"Failed to prepare database connection: {e}",
                {"path": str(self.db_path)}
            )

        return conn

    def _checkout(self) -> sqlite3.Connection:
        with self._lock:
            if self._closed:
                raise DatabaseError("Data source is closed", {"path": str(self.db_path)})
            if self._idle:
                return self._idle.pop()
        return self._create_connection()

    def _checkin(self, conn: sqlite3.Connection) -> None:
        with self._lock:
            if not self._closed and len(self._idle) < self.pool_size:
                if conn.in_transaction:
                    conn.rollback()
                self._idle.append(conn)
                return
        conn.close()

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Context manager for a pooled connection.

        Yields:
            SQLite connection with Row factory and sqlite-vec enabled.

        Raises:
            DatabaseError: If the data source is closed.
        """
        conn = self._checkout()
        try:
            yield conn
        finally:
            self._checkin(conn)

    @contextmanager
    def cursor(self, commit: bool = True) -> Generator[sqlite3.Cursor, None, None]:
        """
        Context manager for database cursors with automatic commit/rollback.

        Args:
            commit: Whether to commit on successful exit.

        Yields:
            SQLite cursor for query execution.
        """
        with self.connection() as conn:
            cursor = conn.cursor()
            try:
                yield cursor
                if commit:
                    conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                cursor.close()

    def close(self) -> None:
        """
        Close idle connections and reject further use.

        Connections checked out at close time are closed when returned.
        Calling close more than once is harmless.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            idle, self._idle = self._idle, []

        for conn in idle:
            conn.close()

        logger.debug(f"Closed data source {self.db_path}")


def create_data_source(connection_string: str) -> DataSource:
    """
    Create a data source from a connection string.

    Accepts either a plain filesystem path or a URL of the form
    ``sqlite:///path/to.db?pool_size=4&timeout=30``.

    Args:
        connection_string: Database location and options.

    Returns:
        New DataSource owning its connections.

    Raises:
        DatabaseError: If the connection string is empty or malformed.
    """
    if not connection_string or not str(connection_string).strip():
        raise DatabaseError("Connection string must not be empty")

    connection_string = str(connection_string).strip()

    if not connection_string.startswith(f"{SQLITE_SCHEME}://"):
        return DataSource(connection_string)

    parsed = urlparse(connection_string)
    # sqlite:///relative.db -> "relative.db", sqlite:////abs.db -> "/abs.db"
    path = parsed.netloc + parsed.path
    if path.startswith("/"):
        path = path[1:]

    if not path:
        raise DatabaseError(
            "Connection string has no database path",
            {"connection_string": connection_string}
        )

    options = {name: values[-1] for name, values in parse_qs(parsed.query).items()}
    unknown = set(options) - {"pool_size", "timeout", "journal_mode"}
    if unknown:
        raise DatabaseError(
            f"Unknown connection string options: {', '.join(sorted(unknown))}",
            {"connection_string": connection_string}
        )

    try:
        pool_size = int(options["pool_size"]) if "pool_size" in options else None
        timeout = float(options["timeout"]) if "timeout" in options else None
    except ValueError as e:
        raise DatabaseError(
            f"Invalid connection string option: {e}",
            {"connection_string": connection_string}
        )

    return DataSource(
        path,
        pool_size=pool_size,
        timeout=timeout,
        journal_mode=options.get("journal_mode")
    )
