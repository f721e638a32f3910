"""MCP Tools Package - tool implementations for read-only PostgreSQL access.

Structure:
- query.py: Raw client SQL through the bounded executor
- table.py: Table inspection (columns, row count, sample)
- analysis.py: Fixed analyses over a table
- search.py: Table and column name search
- schema.py: Schema descriptor and table list for MCP resources
"""

from .query import execute_sql
from .table import get_table_info
from .analysis import analyze_data
from .search import search_tables
from .schema import get_schema, list_table_names

__all__ = [
    'execute_sql',
    'get_table_info',
    'analyze_data',
    'search_tables',
    'get_schema',
    'list_table_names'
]
