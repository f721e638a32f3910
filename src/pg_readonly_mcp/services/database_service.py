"""Database service for PostgreSQL connections."""

import asyncio
import functools
import re
import threading
import psycopg2
import psycopg2.errors
from psycopg2 import pool
from psycopg2.extras import RealDictCursor
from typing import Dict, Any, Optional
from contextlib import contextmanager

from pg_readonly_mcp.lib.logging_config import get_logger, log_database_query
from pg_readonly_mcp.models.error_types import ConnectionError, DatabaseError, PoolExhaustedError

# Module logger
logger = get_logger(__name__)

_URI_USERINFO_RE = re.compile(r'(postgres(?:ql)?://)[^@/\s]+@', re.IGNORECASE)
_PASSWORD_KEYWORD_RE = re.compile(r'(password\s*=\s*)\S+', re.IGNORECASE)


class DatabaseService:
    """Explicitly lifecycled handle on a PostgreSQL connection pool.

    Create it at startup, ``connect()`` (or enter it as a context manager),
    pass it to whatever needs the database, and ``close()`` it on shutdown.
    Every pooled session is read-only and autocommitted.
    """

    def __init__(self, config: Dict[str, Any], pool_size: int = 10, pool_timeout: float = 30):
        """Initialize database service.

        Args:
            config: Connection keywords (host, port, database, user, password,
                connect_timeout, query_timeout, optional sslmode)
            pool_size: Maximum number of connections in pool
            pool_timeout: Seconds a query may wait for a free connection
        """
        self.config = config
        self.pool_size = pool_size
        self.pool_timeout = pool_timeout
        self.pool = None
        self.query_timeout = config.get('query_timeout', 30) * 1000  # Convert to ms
        self._slots = asyncio.Semaphore(pool_size)
        self.in_use = 0
        self._in_use_lock = threading.Lock()

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def connect(self) -> bool:
        """Establish database connection pool.

        Returns:
            True if connection successful

        Raises:
            ConnectionError: If connection fails
        """
        logger.info(f"Connecting to database: {self.config['host']}:{self.config['port']}/{self.config['database']}")
        connect_kwargs = {
            'host': self.config['host'],
            'port': self.config['port'],
            'dbname': self.config['database'],
            'user': self.config['user'],
            'password': self.config.get('password', ''),
            'connect_timeout': self.config.get('connect_timeout', 10),
            'application_name': 'pg-readonly-mcp',
            'options': f"-c statement_timeout={self.query_timeout}"
        }
        if self.config.get('sslmode'):
            connect_kwargs['sslmode'] = self.config['sslmode']

        try:
            self.pool = psycopg2.pool.ThreadedConnectionPool(
                minconn=1,
                maxconn=self.pool_size,
                **connect_kwargs
            )
            logger.info(f"Database connection pool established (size: {self.pool_size})")
            return True
        except psycopg2.Error as e:
            message = self.redact(_first_line(e))
            logger.error(f"Failed to connect to {self.config['host']}/{self.config['database']}: {message}")
            raise ConnectionError(f"Failed to connect to database: {message}")

    @contextmanager
    def get_connection(self):
        """Get a read-only, autocommit connection from the pool.

        The connection goes back to the pool on every exit path; a connection
        the driver reports as closed is discarded instead of reused.

        Yields:
            psycopg2 connection object

        Raises:
            DatabaseError: If the pool is not initialized
            PoolExhaustedError: If the pool has no connection to hand out
        """
        if not self.pool:
            logger.error("Attempted to get connection but pool not initialized")
            raise DatabaseError("Database connection pool not initialized", recoverable=False)

        try:
            conn = self.pool.getconn()
        except psycopg2.pool.PoolError:
            raise PoolExhaustedError(self.pool_timeout)
        except psycopg2.Error as e:
            raise DatabaseError(f"Could not open a database connection: {self.redact(str(e))}")

        with self._in_use_lock:
            self.in_use += 1
        try:
            logger.debug("Connection acquired from pool")
            if not conn.autocommit:
                conn.set_session(readonly=True, autocommit=True)
            yield conn
        finally:
            with self._in_use_lock:
                self.in_use -= 1
            self.pool.putconn(conn, close=bool(conn.closed))

    def execute_readonly_query(self, query: str, params: Optional[tuple] = None,
                               max_rows: Optional[int] = None) -> Dict[str, Any]:
        """Execute one statement on a read-only session and collect its result.

        Blocking; async callers go through run_readonly_query.

        Args:
            query: SQL statement, already classified
            params: Query parameters for parameterized queries
            max_rows: Fetch at most this many rows

        Returns:
            Dictionary with ``rows`` (list of dicts), ``fields`` (list of
            name/type-OID dicts) and ``truncated``

        Raises:
            DatabaseError: If query execution fails
        """
        log_database_query(query, params, logger)
        with self.get_connection() as conn:
            try:
                with conn.cursor(cursor_factory=RealDictCursor) as cursor:
                    cursor.execute(query, params)

                    if cursor.description is None:
                        return {'rows': [], 'fields': [], 'truncated': False}

                    fields = [
                        {'name': column.name, 'data_type_id': column.type_code}
                        for column in cursor.description
                    ]

                    if max_rows is None:
                        results = cursor.fetchall()
                        truncated = False
                    else:
                        results = cursor.fetchmany(max_rows + 1)
                        truncated = len(results) > max_rows
                        results = results[:max_rows]

                    logger.debug(f"Read-only query returned {len(results)} rows")

                    return {
                        'rows': [_normalize_row(row) for row in results],
                        'fields': fields,
                        'truncated': truncated
                    }

            except psycopg2.errors.UndefinedTable as e:
                raise DatabaseError(f"Table does not exist: {self.redact(_first_line(e))}", recoverable=False)
            except psycopg2.errors.UndefinedColumn as e:
                raise DatabaseError(f"Column does not exist: {self.redact(_first_line(e))}", recoverable=False)
            except psycopg2.errors.SyntaxError as e:
                raise DatabaseError(f"SQL syntax error: {self.redact(_first_line(e))}", recoverable=False)
            except psycopg2.errors.InsufficientPrivilege as e:
                raise DatabaseError(f"Permission denied: {self.redact(_first_line(e))}", recoverable=False)
            except psycopg2.errors.QueryCanceled:
                raise DatabaseError(
                    "Query timeout exceeded. Consider refining your query to be more specific or limit the data range.",
                    recoverable=True
                )
            except psycopg2.errors.ReadOnlySqlTransaction as e:
                raise DatabaseError(f"Write operation attempted in read-only mode: {self.redact(_first_line(e))}",
                                    recoverable=False)
            except psycopg2.Error as e:
                raise DatabaseError(f"Database error: {self.redact(_first_line(e))}", recoverable=True)

    async def run_readonly_query(self, query: str, params: Optional[tuple] = None,
                                 max_rows: Optional[int] = None) -> Dict[str, Any]:
        """Async entry point for execute_readonly_query.

        Waits for one of ``pool_size`` slots, then runs the blocking call on
        a worker thread. If the awaiting task is cancelled the worker still
        finishes, returns its connection, and only then frees the slot.

        Raises:
            PoolExhaustedError: If no slot frees up within pool_timeout
            DatabaseError: If query execution fails
        """
        await self._acquire_slot()

        loop = asyncio.get_running_loop()
        try:
            future = loop.run_in_executor(
                None, functools.partial(self.execute_readonly_query, query, params, max_rows)
            )
        except BaseException:
            self._slots.release()
            raise
        future.add_done_callback(self._release_slot)
        return await asyncio.shield(future)

    async def _acquire_slot(self) -> None:
        """Take one slot within pool_timeout.

        The acquire runs as its own task so that a caller cancelled, or timed
        out, in the same loop iteration the acquire succeeds still gives the
        slot back.

        Raises:
            PoolExhaustedError: If no slot frees up within pool_timeout
        """
        acquire = asyncio.ensure_future(self._slots.acquire())
        try:
            await asyncio.wait({acquire}, timeout=self.pool_timeout)
        except BaseException:
            self._abandon_acquire(acquire)
            raise

        if not acquire.done():
            self._abandon_acquire(acquire)
            logger.warning(f"No pooled connection available within {self.pool_timeout}s")
            raise PoolExhaustedError(self.pool_timeout)
        acquire.result()

    def _abandon_acquire(self, acquire: asyncio.Future) -> None:
        # A pending acquire ends cancelled without holding a slot
        if not acquire.done():
            acquire.cancel()
        elif not acquire.cancelled() and acquire.exception() is None:
            self._slots.release()

    def _release_slot(self, future: asyncio.Future) -> None:
        self._slots.release()
        # Mark the outcome as retrieved when the awaiting task was cancelled
        if not future.cancelled():
            future.exception()

    def redact(self, message: str) -> str:
        """Strip credentials from a driver message."""
        message = _URI_USERINFO_RE.sub(r'\1***@', message)
        message = _PASSWORD_KEYWORD_RE.sub(r'\1***', message)
        password = self.config.get('password')
        if password:
            message = message.replace(password, '***')
        return message

    def pool_stats(self) -> Dict[str, Any]:
        """Pool capacity and current use, for health reporting."""
        return {
            'initialized': self.pool is not None,
            'max_connections': self.pool_size,
            'in_use': self.in_use,
            'acquire_timeout_seconds': self.pool_timeout,
            'database': self.config.get('database', 'unknown')
        }

    def close(self):
        """Close all database connections."""
        if self.pool:
            self.pool.closeall()
            self.pool = None
            logger.info("Database connection pool closed")


def _first_line(error: Exception) -> str:
    return str(error).strip().split('\n')[0]


def _normalize_row(row) -> Dict[str, Any]:
    """Convert a RealDictRow to a plain dict with JSON-friendly binary values."""
    normalized = {}
    for key, value in dict(row).items():
        if isinstance(value, memoryview):
            value = value.tobytes()
        if isinstance(value, (bytes, bytearray)):
            value = '\\x' + bytes(value).hex()
        normalized[key] = value
    return normalized
