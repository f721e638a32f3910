"""Table-level MCP tools.

This module contains the get_table_info tool and the column lookup shared
with the analysis tool.
"""

from typing import Dict, Any, List

from pg_readonly_mcp.lib.logging_config import get_logger
from pg_readonly_mcp.lib.sql.identifiers import Identifier, sanitize
from pg_readonly_mcp.lib.sql.introspection import IntrospectionQueryBuilder
from pg_readonly_mcp.models.error_types import DatabaseError
from pg_readonly_mcp.models.tool_responses import ColumnDescriptor, TableInfoResponse
from pg_readonly_mcp.services.query_executor import BoundedExecutor

logger = get_logger(__name__)


async def fetch_columns(executor: BoundedExecutor,
                        builder: IntrospectionQueryBuilder,
                        table: Identifier) -> List[ColumnDescriptor]:
    """Read a table's columns, failing if the table does not exist.

    Raises:
        DatabaseError: If the table has no columns in information_schema
    """
    result = await executor.execute(builder.columns(table))
    if not result.rows:
        raise DatabaseError(f"Table '{table}' does not exist", recoverable=False)

    return [
        ColumnDescriptor(
            name=row['column_name'],
            type=row['data_type'],
            nullable=bool(row['nullable'])
        )
        for row in result.rows
    ]


async def get_table_info(executor: BoundedExecutor,
                         table_name: str,
                         builder: IntrospectionQueryBuilder = None) -> Dict[str, Any]:
    """Get columns, row count and a small sample of a table.

    Args:
        executor: Bounded executor instance
        table_name: Table name, optionally schema-qualified (default schema: public)
        builder: Introspection builder (default: one for the public schema)

    Returns:
        Dictionary containing:
        - table_name: Name of the table
        - schema_name: Schema of the table
        - columns: List of {name, type, nullable}
        - row_count: Exact number of rows
        - sample: Up to 5 rows

    Raises:
        InvalidIdentifierError: If the table name fails sanitization
        DatabaseError: If the table does not exist
    """
    builder = builder or IntrospectionQueryBuilder()
    table = builder.qualify(sanitize(table_name))

    columns = await fetch_columns(executor, builder, table)
    count_result = await executor.execute(builder.row_count(table))
    sample_result = await executor.execute(builder.sample(table))

    row_count = count_result.rows[0]['row_count'] if count_result.rows else 0
    logger.info(f"Inspected table {table}: {len(columns)} columns, {row_count} rows")

    response = TableInfoResponse(
        table_name=table.name,
        schema_name=table.schema,
        columns=columns,
        row_count=row_count,
        sample=sample_result.rows
    )
    return response.model_dump(mode='json')
