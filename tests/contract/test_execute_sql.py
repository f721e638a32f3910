"""Contract tests for the execute_sql MCP tool.

These tests verify the execute_sql tool contract:
- Returns rows, row_count and fields for read-only statements
- Applies the default limit and validates explicit limits
- Rejects anything that is not read-only before it reaches the database
"""

import pytest
from unittest.mock import AsyncMock, Mock

from pg_readonly_mcp.lib.tools.query import execute_sql
from pg_readonly_mcp.models.error_types import LimitError, ValidationError
from pg_readonly_mcp.services.database_service import DatabaseService
from pg_readonly_mcp.services.query_executor import BoundedExecutor


class TestExecuteSqlContract:
    """Contract tests for execute_sql tool."""

    @pytest.fixture
    def db_service(self):
        service = Mock(spec=DatabaseService)
        service.run_readonly_query = AsyncMock(return_value={
            'rows': [{'id': 1, 'email': 'a@example.com'}],
            'fields': [{'name': 'id', 'data_type_id': 23}, {'name': 'email', 'data_type_id': 25}],
            'truncated': False
        })
        return service

    @pytest.fixture
    def executor(self, db_service):
        return BoundedExecutor(db_service)

    @pytest.mark.asyncio
    async def test_returns_rows_and_fields(self, executor):
        """Test the payload shape."""
        result = await execute_sql(executor, "SELECT id, email FROM users")

        assert isinstance(result, dict)
        assert result['rows'] == [{'id': 1, 'email': 'a@example.com'}]
        assert result['row_count'] == 1
        assert result['fields'] == [
            {'name': 'id', 'data_type_id': 23},
            {'name': 'email', 'data_type_id': 25}
        ]
        assert result['limit_applied'] == 100
        assert result['truncated'] is False
        assert result['query'].endswith("\nLIMIT 100")
        assert 'execution_time_ms' in result

    @pytest.mark.asyncio
    async def test_explicit_limit(self, executor, db_service):
        """Test that an explicit limit is honoured."""
        result = await execute_sql(executor, "SELECT id FROM users", limit=10)
        assert result['limit_applied'] == 10
        assert db_service.run_readonly_query.await_args.kwargs['max_rows'] == 10

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [0, 1001])
    async def test_out_of_range_limit(self, executor, db_service, limit):
        """Test that out-of-range limits raise LimitError without executing."""
        with pytest.raises(LimitError):
            await execute_sql(executor, "SELECT 1", limit=limit)
        db_service.run_readonly_query.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", [
        "DELETE FROM users",
        "SELECT 1; DROP TABLE users",
        "WITH x AS (UPDATE users SET admin = true RETURNING *) SELECT * FROM x",
        "",
    ])
    async def test_mutations_rejected(self, executor, db_service, query):
        """Test that writes never reach the database."""
        with pytest.raises(ValidationError):
            await execute_sql(executor, query)
        db_service.run_readonly_query.assert_not_called()

    @pytest.mark.asyncio
    async def test_explain_runs_unbounded_by_limit_clause(self, executor, db_service):
        """Test that EXPLAIN output is not rewritten with a LIMIT."""
        result = await execute_sql(executor, "EXPLAIN SELECT * FROM users")
        assert result['query'] == "EXPLAIN SELECT * FROM users"
        assert db_service.run_readonly_query.await_args.kwargs['max_rows'] == 100
