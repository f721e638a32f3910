"""Catalog search MCP tool."""

from typing import Dict, Any

from pg_readonly_mcp.lib.logging_config import get_logger
from pg_readonly_mcp.lib.sql.introspection import IntrospectionQueryBuilder, translate_search_pattern
from pg_readonly_mcp.models.error_types import ValidationError
from pg_readonly_mcp.models.tool_responses import ColumnMatch, SearchResponse
from pg_readonly_mcp.services.query_executor import BoundedExecutor

logger = get_logger(__name__)

SEARCH_TYPES = ('tables', 'columns', 'both')


async def search_tables(executor: BoundedExecutor,
                        pattern: str,
                        search_type: str = 'both',
                        builder: IntrospectionQueryBuilder = None) -> Dict[str, Any]:
    """Find tables and/or columns whose names match a wildcard pattern.

    Args:
        executor: Bounded executor instance
        pattern: Name pattern; '*' matches any run, '?' one character,
            no wildcard means substring match
        search_type: 'tables', 'columns' or 'both'
        builder: Introspection builder

    Returns:
        Dictionary containing:
        - pattern: The pattern as given
        - search_type: What was searched
        - tables: Matching 'schema.table' names
        - columns: Matching columns with their table and type

    Raises:
        InvalidIdentifierError: If the pattern holds disallowed characters
        ValidationError: If search_type is unknown
    """
    if search_type not in SEARCH_TYPES:
        raise ValidationError(
            f"search_type must be one of: {', '.join(SEARCH_TYPES)}"
        )

    like_pattern = translate_search_pattern(pattern)
    builder = builder or IntrospectionQueryBuilder()

    tables = []
    columns = []

    if search_type in ('tables', 'both'):
        result = await executor.execute(builder.search_tables(like_pattern))
        tables = [f"{row['schema_name']}.{row['table_name']}" for row in result.rows]

    if search_type in ('columns', 'both'):
        result = await executor.execute(builder.search_columns(like_pattern))
        columns = [
            ColumnMatch(
                schema_name=row['schema_name'],
                table_name=row['table_name'],
                column_name=row['column_name'],
                data_type=row['data_type']
            )
            for row in result.rows
        ]

    logger.info(f"Search '{pattern}' ({search_type}) matched {len(tables)} tables, {len(columns)} columns")

    response = SearchResponse(
        pattern=pattern,
        search_type=search_type,
        tables=tables,
        columns=columns
    )
    return response.model_dump(mode='json')
