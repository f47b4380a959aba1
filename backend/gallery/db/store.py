"""DuckDB-backed record store.

This module provides the only path to the relational database. Every
statement goes through :meth:`RecordStore.execute` with ``?`` placeholders
and a parameter list; SQL is never assembled from request data.

Database Schema:
    images table:
        - id: Auto-incrementing primary key (images_seq)
        - name, description, author: Sanitized text, at most 500 characters
        - path: Generated storage filename, unique
        - created_at: Insert time (UTC)

Connections:
    A single DuckDB database handle is opened on startup and ``pool_size``
    cursors are derived from it. Each cursor is an independent connection to
    the same database, so statements can run concurrently in executor
    threads. Acquiring a connection waits when all of them are busy; there
    is no cap on the number of waiters.

Usage:
    store = RecordStore(db_path="gallery.duckdb", pool_size=10)
    store.open()
    rows = await store.execute("SELECT * FROM images WHERE id = ?", [1])
    store.close()
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import duckdb

from ..errors import StoreError

logger = logging.getLogger(__name__)

_CREATE_SEQUENCE = "CREATE SEQUENCE IF NOT EXISTS images_seq START 1"

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS images (
    id          INTEGER DEFAULT nextval('images_seq') PRIMARY KEY,
    name        VARCHAR NOT NULL DEFAULT '',
    description VARCHAR NOT NULL DEFAULT '',
    author      VARCHAR NOT NULL DEFAULT '',
    path        VARCHAR NOT NULL UNIQUE,
    created_at  TIMESTAMP NOT NULL
)
"""

_INDEX = "CREATE INDEX IF NOT EXISTS idx_images_created_at ON images(created_at)"


class RecordStore:
    """Bounded pool of DuckDB connections with a parameterized execute.

    Args:
        db_path: Path to the DuckDB file, or ``":memory:"``.
        pool_size: Maximum number of statements running at once.
    """

    def __init__(self, db_path: str, pool_size: int = 10) -> None:
        if pool_size < 1:
            raise ValueError("pool_size must be at least 1")
        self._db_path = db_path
        self._pool_size = pool_size
        self._database: Optional[duckdb.DuckDBPyConnection] = None
        self._connections: List[duckdb.DuckDBPyConnection] = []
        self._idle: Optional[asyncio.Queue] = None

    @property
    def pool_size(self) -> int:
        return self._pool_size

    @property
    def is_open(self) -> bool:
        return self._database is not None

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    def open(self) -> None:
        """Open the database, create the schema and fill the pool.

        Safe to call on an already open store (no-op).
        """
        if self._database is not None:
            return
        try:
            self._database = duckdb.connect(self._db_path)
            self._database.execute(_CREATE_SEQUENCE)
            self._database.execute(_CREATE_TABLE)
            self._database.execute(_INDEX)
        except duckdb.Error as exc:
            self.close()
            raise StoreError(f"Failed to open database {self._db_path}: {exc}") from exc

        self._idle = asyncio.Queue()
        for _ in range(self._pool_size):
            conn = self._database.cursor()
            self._connections.append(conn)
            self._idle.put_nowait(conn)
        logger.info(
            "[RecordStore] Opened db=%s pool_size=%d", self._db_path, self._pool_size
        )

    def close(self) -> None:
        """Close every pooled connection and the database handle."""
        for conn in self._connections:
            conn.close()
        self._connections = []
        self._idle = None
        if self._database is not None:
            self._database.close()
            self._database = None
            logger.info("[RecordStore] Closed db=%s", self._db_path)

    # -----------------------------------------------------------------------
    # Connections
    # -----------------------------------------------------------------------

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[duckdb.DuckDBPyConnection]:
        """Borrow a pooled connection, waiting while all are in use."""
        if self._idle is None:
            raise StoreError("Record store is not open")
        idle = self._idle
        conn = await idle.get()
        try:
            yield conn
        finally:
            idle.put_nowait(conn)

    async def execute(
        self, sql: str, params: Optional[Sequence[Any]] = None
    ) -> List[Dict[str, Any]]:
        """Run one statement with bound parameters.

        Args:
            sql: Statement using ``?`` positional placeholders.
            params: Values bound to the placeholders, in order.

        Returns:
            Result rows as dicts keyed by column name (empty for statements
            that return nothing).

        Raises:
            StoreError: If the store is closed or DuckDB rejects the statement.
        """
        async with self.connection() as conn:
            loop = asyncio.get_event_loop()
            statement = loop.run_in_executor(None, _run, conn, sql, list(params or []))
            try:
                return await asyncio.shield(statement)
            except asyncio.CancelledError:
                # the connection goes back to the pool only once DuckDB is done with it
                await asyncio.wait([statement])
                raise

    # -----------------------------------------------------------------------
    # Images
    # -----------------------------------------------------------------------

    async def insert_image(self, name: str, description: str, author: str, path: str) -> int:
        """Insert one image record and return its new id."""
        rows = await self.execute(
            """
            INSERT INTO images (name, description, author, path, created_at)
            VALUES (?, ?, ?, ?, ?)
            RETURNING id
            """,
            [name, description, author, path, datetime.now(timezone.utc).replace(tzinfo=None)],
        )
        if not rows:
            raise StoreError("Insert returned no id")
        return int(rows[0]["id"])

    async def list_images(self) -> List[Dict[str, Any]]:
        """Return all image records, newest first."""
        return await self.execute(
            """
            SELECT id, name, description, author, path, created_at
            FROM images
            ORDER BY created_at DESC, id DESC
            """
        )


def _run(conn: duckdb.DuckDBPyConnection, sql: str, params: List[Any]) -> List[Dict[str, Any]]:
    try:
        conn.execute(sql, params)
        if conn.description is None:
            return []
        columns = [col[0] for col in conn.description]
        return [dict(zip(columns, row)) for row in conn.fetchall()]
    except duckdb.Error as exc:
        raise StoreError(str(exc)) from exc
