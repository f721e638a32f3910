"""Query execution MCP tool.

Client SQL goes through the same bounded executor as every statement the
server builds itself.
"""

from typing import Dict, Any

from pg_readonly_mcp.lib.logging_config import get_logger, mask_statement
from pg_readonly_mcp.models.query_types import ExecutionRequest
from pg_readonly_mcp.services.query_executor import BoundedExecutor

logger = get_logger(__name__)


async def execute_sql(executor: BoundedExecutor,
                      query: str,
                      limit: Any = None) -> Dict[str, Any]:
    """Execute a client-supplied read-only SQL statement.

    Args:
        executor: Bounded executor instance
        query: SQL statement (SELECT, WITH, EXPLAIN, SHOW, DESCRIBE)
        limit: Optional result limit (default: 100, max: 1000)

    Returns:
        Dictionary containing:
        - rows: List of result rows as dictionaries
        - row_count: Number of rows returned
        - fields: Result columns with their type OIDs
        - query: The executed statement, possibly with a LIMIT appended
        - execution_time_ms: Query execution time in milliseconds
        - limit_applied: Row ceiling used
        - truncated: Whether more rows were available

    Raises:
        ValidationError: If the statement is not read-only
        LimitError: If limit is not an integer in [1, 1000]
        DatabaseError: If execution fails
    """
    logger.info(f"Executing query: {mask_statement(query or '', max_length=100)}")
    result = await executor.execute(ExecutionRequest(statement=query, requested_limit=limit))
    return result.model_dump(mode='json')
