"""Schema-level reads backing the MCP resources.

This module assembles the schema descriptor and the flat table list, both
from introspection statements run through the bounded executor.
"""

import json
from typing import Dict, Any, List

from pg_readonly_mcp.lib.logging_config import get_logger
from pg_readonly_mcp.lib.sql.introspection import IntrospectionQueryBuilder
from pg_readonly_mcp.models.tool_responses import ColumnDescriptor, SchemaDescriptor, TableDescriptor
from pg_readonly_mcp.services.query_executor import BoundedExecutor

logger = get_logger(__name__)


async def get_schema(executor: BoundedExecutor,
                     builder: IntrospectionQueryBuilder = None) -> Dict[str, Any]:
    """Describe every user table and its columns.

    Returns:
        Dictionary containing:
        - tables: List of {schema_name, name, columns: [{name, type, nullable}]}
    """
    builder = builder or IntrospectionQueryBuilder()
    result = await executor.execute(builder.schema_descriptor())

    tables = []
    for row in result.rows:
        columns = row['columns']
        # json_agg arrives decoded from psycopg2, but tolerate raw text
        if isinstance(columns, str):
            columns = json.loads(columns)
        tables.append(TableDescriptor(
            schema_name=row['schema_name'],
            name=row['table_name'],
            columns=[ColumnDescriptor(**column) for column in columns]
        ))

    logger.debug(f"Schema descriptor covers {len(tables)} tables")
    return SchemaDescriptor(tables=tables).model_dump(mode='json')


async def list_table_names(executor: BoundedExecutor,
                           builder: IntrospectionQueryBuilder = None) -> List[str]:
    """List user tables and views as 'schema.table' names."""
    builder = builder or IntrospectionQueryBuilder()
    result = await executor.execute(builder.list_tables())
    return [f"{row['schema_name']}.{row['table_name']}" for row in result.rows]
