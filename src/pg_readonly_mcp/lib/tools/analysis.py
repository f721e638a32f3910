"""Data analysis MCP tool."""

from typing import Dict, Any, List

from pg_readonly_mcp.lib.logging_config import get_logger
from pg_readonly_mcp.lib.sql.analysis import ANALYSIS_TYPES, AnalysisColumn, AnalysisQueryBuilder
from pg_readonly_mcp.lib.sql.identifiers import sanitize, sanitize_column
from pg_readonly_mcp.lib.sql.introspection import IntrospectionQueryBuilder
from pg_readonly_mcp.lib.tools.table import fetch_columns
from pg_readonly_mcp.models.error_types import UnsupportedAnalysisError
from pg_readonly_mcp.models.tool_responses import AnalysisResponse
from pg_readonly_mcp.services.query_executor import BoundedExecutor

logger = get_logger(__name__)


async def analyze_data(executor: BoundedExecutor,
                       table_name: str,
                       analysis_type: str,
                       bucket: str = 'month',
                       builder: IntrospectionQueryBuilder = None) -> Dict[str, Any]:
    """Run one of the fixed analyses against a table.

    Args:
        executor: Bounded executor instance
        table_name: Table name, optionally schema-qualified
        analysis_type: summary, distribution, nulls, duplicates or trends
        bucket: Time bucket for trends (day, week, month, year)
        builder: Introspection builder (default: one for the public schema)

    Returns:
        Dictionary containing:
        - table_name: Qualified table name
        - analysis_type: The analysis that ran
        - result: Analysis rows
        - row_count: Number of result rows
        - column: Column grouped on (distribution, trends)

    Raises:
        InvalidIdentifierError: If the table or one of its column names fails sanitization
        UnsupportedAnalysisError: Unknown kind, or trends without a date/time column
        DatabaseError: If the table does not exist or execution fails
    """
    if analysis_type not in ANALYSIS_TYPES:
        raise UnsupportedAnalysisError(
            str(analysis_type),
            f"Unknown analysis type '{analysis_type}'. Use one of: {', '.join(ANALYSIS_TYPES)}"
        )

    builder = builder or IntrospectionQueryBuilder()
    table = builder.qualify(sanitize(table_name))
    descriptors = await fetch_columns(executor, builder, table)

    if analysis_type == 'summary':
        columns: List[AnalysisColumn] = []
    else:
        columns = [
            AnalysisColumn(sanitize_column(column.name), column.type)
            for column in descriptors
        ]

    query = AnalysisQueryBuilder().build(analysis_type, table, columns, bucket=bucket)
    result = await executor.execute(query.request)

    rows = result.rows
    if analysis_type == 'nulls':
        rows = _reshape_null_counts(rows, columns)

    logger.info(f"Ran {analysis_type} analysis on {table}: {len(rows)} result rows")

    response = AnalysisResponse(
        table_name=str(table),
        analysis_type=analysis_type,
        result=rows,
        row_count=len(rows),
        column=query.column.name if query.column else None
    )
    return response.model_dump(mode='json')


def _reshape_null_counts(rows: List[Dict[str, Any]], columns: List[AnalysisColumn]) -> List[Dict[str, Any]]:
    """Turn the single aggregate row into one entry per column."""
    if not rows:
        return []

    aggregate = rows[0]
    total = aggregate.get('total_rows') or 0
    reshaped = []
    for position, column in enumerate(columns):
        null_count = int(aggregate.get(f'null_{position}') or 0)
        reshaped.append({
            'column': column.identifier.name,
            'null_count': null_count,
            'null_percentage': round(null_count * 100.0 / total, 2) if total else 0.0
        })
    return reshaped
