"""Shared fixtures: fake psycopg2 pool objects and a mocked bounded executor."""

import threading
import time
from unittest.mock import AsyncMock, Mock

import psycopg2.pool
import pytest

from pg_readonly_mcp.models.tool_responses import QueryResult
from pg_readonly_mcp.services.query_executor import BoundedExecutor


class FakeColumn:
    """Stands in for a psycopg2 cursor.description entry."""

    def __init__(self, name, type_code=25):
        self.name = name
        self.type_code = type_code


class FakeCursor:
    def __init__(self, connection):
        self.connection = connection
        self.description = None
        self._rows = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return False

    def execute(self, query, params=None):
        pool = self.connection.pool
        pool.executed.append((query, params))
        if pool.delay:
            time.sleep(pool.delay)
        if pool.error is not None:
            raise pool.error
        self._rows = [dict(row) for row in pool.rows]
        if pool.description is not None:
            self.description = pool.description
        elif self._rows:
            self.description = [FakeColumn(name) for name in self._rows[0]]
        else:
            self.description = [FakeColumn('result')]

    def fetchall(self):
        return list(self._rows)

    def fetchmany(self, size):
        return list(self._rows[:size])


class FakeConnection:
    def __init__(self, pool):
        self.pool = pool
        self.autocommit = False
        self.readonly = None
        self.closed = 0

    def set_session(self, readonly=None, autocommit=None):
        self.readonly = readonly
        self.autocommit = autocommit

    def cursor(self, cursor_factory=None):
        return FakeCursor(self)


class FakePool:
    """Thread-safe stand-in for psycopg2's ThreadedConnectionPool.

    Raises PoolError like the real pool when more than maxconn connections
    are checked out, and records the peak number checked out at once.
    """

    def __init__(self, maxconn=10, rows=None, description=None, delay=0.0, error=None):
        self.minconn = 1
        self.maxconn = maxconn
        self.rows = rows if rows is not None else [{'value': 1}]
        self.description = description
        self.delay = delay
        self.error = error
        self.executed = []
        self.returned = []
        self.checked_out = 0
        self.peak = 0
        self.closed = False
        self._lock = threading.Lock()

    def getconn(self):
        with self._lock:
            if self.checked_out >= self.maxconn:
                raise psycopg2.pool.PoolError("connection pool exhausted")
            self.checked_out += 1
            self.peak = max(self.peak, self.checked_out)
        return FakeConnection(self)

    def putconn(self, conn, close=False):
        with self._lock:
            self.checked_out -= 1
            self.returned.append((conn, close))

    def closeall(self):
        self.closed = True


def make_result(rows, query="SELECT 1", limit=100, truncated=False):
    """QueryResult as the bounded executor would return it."""
    return QueryResult(
        rows=rows,
        row_count=len(rows),
        fields=[],
        query=query,
        execution_time_ms=1.0,
        limit_applied=limit,
        truncated=truncated
    )


@pytest.fixture
def db_config():
    """Connection keywords as DatabaseConfig.to_dict() produces them."""
    return {
        'host': 'db.example.internal',
        'port': 5432,
        'database': 'shop',
        'user': 'reader',
        'password': 's3cret-pw',
        'connect_timeout': 10,
        'query_timeout': 30
    }


@pytest.fixture
def fake_pool_factory():
    return FakePool


@pytest.fixture
def result_factory():
    return make_result


@pytest.fixture
def mock_executor():
    """A BoundedExecutor whose execute() is an AsyncMock."""
    executor = Mock(spec=BoundedExecutor)
    executor.execute = AsyncMock()
    executor.execute_sql = AsyncMock()
    return executor
