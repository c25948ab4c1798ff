"""
PostgreSQL datastore.

Read-only access to the electoral roll. Every caller checks out its own
connection from a shared pool for the duration of one session.
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Iterator, List, Mapping, Optional

import psycopg2
from psycopg2.extras import RealDictCursor
from psycopg2.pool import PoolError, ThreadedConnectionPool

from ..config import DBConfig
from ..exceptions import ConfigurationError, DatastoreConnectionError, QueryExecutionError
from ..logger import get_logger

logger = get_logger(__name__)

EXTENSION_EXISTS_SQL = """
    SELECT EXISTS(
        SELECT 1 FROM pg_extension WHERE extname = %(extension)s
    ) AS extension_exists
"""

# Errors raised while connecting or checking out a connection
CONNECTION_ERRORS = (psycopg2.OperationalError, psycopg2.InterfaceError)


class PostgresSession:
    """
    One checked-out connection.

    Translates driver errors into the application taxonomy by connection
    state: an error that leaves the connection closed (or an InterfaceError)
    becomes DatastoreConnectionError. Anything else raised while executing,
    including a statement_timeout cancel, becomes QueryExecutionError.
    """

    def __init__(self, conn):
        self._conn = conn

    def _connection_lost(self, error: psycopg2.Error) -> bool:
        return bool(self._conn.closed) or isinstance(error, psycopg2.InterfaceError)

    def fetch_all(self, query: str, params: Optional[Mapping[str, Any]] = None) -> List[dict]:
        """Execute a statement and return all rows as dictionaries."""
        try:
            with self._conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(query, params)
                return [dict(row) for row in cur.fetchall()]
        except psycopg2.Error as e:
            if self._connection_lost(e):
                logger.error(f"Database connection failed during query: {e}")
                raise DatastoreConnectionError("Database connection failed", cause=str(e)) from e
            raise QueryExecutionError("Query failed", cause=str(e).strip()) from e

    def fetch_one(self, query: str, params: Optional[Mapping[str, Any]] = None) -> Optional[dict]:
        rows = self.fetch_all(query, params)
        return rows[0] if rows else None

    def extension_exists(self, name: str) -> bool:
        """Feature-detection: is the named extension installed?"""
        row = self.fetch_one(EXTENSION_EXISTS_SQL, {"extension": name})
        return bool(row and row.get("extension_exists"))


class PostgresDatastore:
    """
    Pooled PostgreSQL access.

    Handles:
    - Lazy pool creation (nothing connects at import or construction)
    - Scoped connection checkout with guaranteed release
    """

    def __init__(self, config: DBConfig, pool: Optional[ThreadedConnectionPool] = None):
        """
        Initialize datastore.

        Args:
            config: Database configuration
            pool: Pre-built pool (tests, or sharing with another component)
        """
        self.config = config
        self._pool = pool
        self._lock = threading.Lock()

    def _get_pool(self) -> ThreadedConnectionPool:
        """Get or create the connection pool."""
        if self._pool is not None:
            return self._pool
        with self._lock:
            if self._pool is None:
                if not self.config.is_configured:
                    raise ConfigurationError(
                        "Database is not configured; set DATABASE_URL or DB_HOST/DB_NAME/DB_USER",
                        config_key="DATABASE_URL",
                    )
                try:
                    self._pool = ThreadedConnectionPool(
                        self.config.pool_min,
                        self.config.pool_max,
                        **self.config.connect_kwargs()
                    )
                except CONNECTION_ERRORS as e:
                    logger.error(f"Failed to connect to PostgreSQL: {e}")
                    raise DatastoreConnectionError("Could not connect to database", cause=str(e)) from e
                logger.info(
                    f"Connection pool ready ({self.config.pool_min}-{self.config.pool_max} connections)"
                )
        return self._pool

    @contextmanager
    def session(self) -> Iterator[PostgresSession]:
        """
        Check out a connection for the duration of the block.

        The connection goes back to the pool on every exit path; a
        connection that was closed underneath us is discarded instead.
        """
        pool = self._get_pool()
        try:
            conn = pool.getconn()
        except (PoolError, *CONNECTION_ERRORS) as e:
            logger.error(f"Could not check out a database connection: {e}")
            raise DatastoreConnectionError("Could not connect to database", cause=str(e)) from e

        try:
            conn.autocommit = True
            yield PostgresSession(conn)
        finally:
            pool.putconn(conn, close=bool(conn.closed))

    def close(self) -> None:
        """Close every pooled connection."""
        with self._lock:
            if self._pool is not None:
                self._pool.closeall()
                self._pool = None
