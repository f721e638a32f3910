"""Bounded execution of classified statements.

The executor is the only path from the tools to the database service:
classify, resolve the row ceiling, bound the statement, execute once.
"""

import time
from typing import Any, Optional

from pg_readonly_mcp.lib.logging_config import get_logger
from pg_readonly_mcp.lib.sql.classifier import validate_statement
from pg_readonly_mcp.models.error_types import LimitError, ValidationError
from pg_readonly_mcp.models.query_types import ExecutionRequest, SqlStatement
from pg_readonly_mcp.models.tool_responses import FieldInfo, QueryResult
from pg_readonly_mcp.services.database_service import DatabaseService

logger = get_logger(__name__)

DEFAULT_LIMIT = 100
MAX_LIMIT = 1000

def resolve_limit(requested: Any, default: int = DEFAULT_LIMIT, maximum: int = MAX_LIMIT) -> int:
    """Resolve the effective row ceiling for a request.

    An absent limit falls back to the default. A present one must be an
    integer in [1, maximum]; it is rejected, never clamped.

    Raises:
        LimitError: If the limit is not an integer or out of range
    """
    if requested is None:
        return default
    # bool is an int subclass but never a meaningful row count
    if isinstance(requested, bool) or not isinstance(requested, int):
        raise LimitError(requested, maximum)
    if not 1 <= requested <= maximum:
        raise LimitError(requested, maximum)
    return requested


def apply_limit(statement: SqlStatement, limit: int) -> str:
    """Append a LIMIT clause to a SELECT whose outermost query has none.

    An existing LIMIT, OFFSET or FETCH FIRST is read from the parse tree, so
    comments after it and limits inside subqueries do not confuse the check.
    The clause goes on its own line so a trailing ``--`` comment cannot
    swallow it. EXPLAIN, SHOW and DESCRIBE are returned unchanged apart from
    a trailing semicolon.
    """
    body = statement.text.rstrip().rstrip(';').rstrip()

    if statement.effective_keyword != 'SELECT':
        return body
    if statement.has_row_limit:
        return body
    return f"{body}\nLIMIT {limit}"


class BoundedExecutor:
    """Classifies, bounds and executes statements against a DatabaseService."""

    def __init__(self, db_service: DatabaseService,
                 default_limit: int = DEFAULT_LIMIT,
                 max_limit: int = MAX_LIMIT):
        self.db_service = db_service
        self.default_limit = default_limit
        self.max_limit = max_limit

    async def execute(self, request: ExecutionRequest) -> QueryResult:
        """Execute one request.

        Args:
            request: Statement, optional row limit and bound parameters

        Returns:
            QueryResult with at most the effective limit of rows

        Raises:
            ValidationError: If the classifier denies the statement
            LimitError: If the requested limit is out of range
            PoolExhaustedError: If no pooled connection frees up in time
            DatabaseError: If the driver reports a failure
        """
        try:
            statement = validate_statement(
                request.statement, placeholders=request.params is not None
            )
        except ValidationError as e:
            logger.warning(f"Statement rejected: {e.reason}")
            raise

        limit = resolve_limit(request.requested_limit, self.default_limit, self.max_limit)
        final_query = apply_limit(statement, limit)

        start_time = time.time()
        result = await self.db_service.run_readonly_query(final_query, request.params, max_rows=limit)
        execution_time = (time.time() - start_time) * 1000  # Convert to milliseconds

        rows = result['rows']
        if result['truncated']:
            logger.info(f"Result truncated at {limit} rows")
        logger.info(f"Query executed successfully, returned {len(rows)} rows in {execution_time:.2f}ms")

        return QueryResult(
            rows=rows,
            row_count=len(rows),
            fields=[FieldInfo(**field) for field in result['fields']],
            query=final_query,
            execution_time_ms=round(execution_time, 2),
            limit_applied=limit,
            truncated=result['truncated']
        )

    async def execute_sql(self, query: str, limit: Optional[Any] = None, params=None) -> QueryResult:
        """Shorthand for execute(ExecutionRequest(query, limit, params))."""
        return await self.execute(ExecutionRequest(statement=query, requested_limit=limit, params=params))
