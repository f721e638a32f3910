"""Schema discovery statements.

Each builder returns an ExecutionRequest for the bounded executor. Table
names reach the SQL text only as sanitized Identifiers; catalog lookups bind
their values as driver parameters.
"""

import re

from pg_readonly_mcp.lib.sql.identifiers import Identifier, require_identifier
from pg_readonly_mcp.models.error_types import InvalidIdentifierError
from pg_readonly_mcp.models.query_types import ExecutionRequest

SAMPLE_SIZE = 5
CATALOG_LIMIT = 1000
MAX_PATTERN_LENGTH = 128

_SYSTEM_SCHEMAS = "('pg_catalog', 'information_schema', 'pg_toast')"
_SEARCH_PATTERN_RE = re.compile(r'[A-Za-z0-9_*?]+')


class IntrospectionQueryBuilder:
    """Builds the fixed set of schema-discovery statements."""

    def __init__(self, default_schema: str = 'public'):
        self.default_schema = default_schema

    def qualify(self, table: Identifier) -> Identifier:
        """Apply the default schema to an unqualified table name."""
        return require_identifier(table).with_default_schema(self.default_schema)

    def list_tables(self) -> ExecutionRequest:
        statement = f"""
            SELECT
                table_schema AS schema_name,
                table_name
            FROM information_schema.tables
            WHERE table_schema NOT IN {_SYSTEM_SCHEMAS}
            AND table_type IN ('BASE TABLE', 'VIEW')
            ORDER BY table_schema, table_name
        """
        return ExecutionRequest(statement=statement, requested_limit=CATALOG_LIMIT)

    def columns(self, table: Identifier) -> ExecutionRequest:
        """Column metadata for one table, in ordinal order."""
        table = self.qualify(table)
        statement = """
            SELECT
                column_name,
                data_type,
                is_nullable = 'YES' AS nullable
            FROM information_schema.columns
            WHERE table_schema = %s
            AND table_name = %s
            ORDER BY ordinal_position
        """
        return ExecutionRequest(
            statement=statement,
            requested_limit=CATALOG_LIMIT,
            params=(table.schema, table.name)
        )

    def row_count(self, table: Identifier) -> ExecutionRequest:
        table = self.qualify(table)
        return ExecutionRequest(
            statement=f"SELECT COUNT(*) AS row_count FROM {table.quoted}",
            requested_limit=1
        )

    def sample(self, table: Identifier) -> ExecutionRequest:
        """First rows of a table, at most SAMPLE_SIZE."""
        table = self.qualify(table)
        return ExecutionRequest(
            statement=f"SELECT * FROM {table.quoted}",
            requested_limit=SAMPLE_SIZE
        )

    def schema_descriptor(self) -> ExecutionRequest:
        """One row per user table with its columns aggregated as JSON."""
        statement = f"""
            SELECT
                c.table_schema AS schema_name,
                c.table_name,
                json_agg(
                    json_build_object(
                        'name', c.column_name,
                        'type', c.data_type,
                        'nullable', c.is_nullable = 'YES'
                    )
                    ORDER BY c.ordinal_position
                ) AS columns
            FROM information_schema.columns c
            JOIN information_schema.tables t
                ON t.table_schema = c.table_schema
                AND t.table_name = c.table_name
            WHERE c.table_schema NOT IN {_SYSTEM_SCHEMAS}
            GROUP BY c.table_schema, c.table_name
            ORDER BY c.table_schema, c.table_name
        """
        return ExecutionRequest(statement=statement, requested_limit=CATALOG_LIMIT)

    def search_tables(self, like_pattern: str) -> ExecutionRequest:
        """Tables whose name matches an ILIKE pattern from translate_search_pattern."""
        statement = f"""
            SELECT
                table_schema AS schema_name,
                table_name
            FROM information_schema.tables
            WHERE table_schema NOT IN {_SYSTEM_SCHEMAS}
            AND table_name ILIKE %s
            ORDER BY table_schema, table_name
        """
        return ExecutionRequest(
            statement=statement,
            requested_limit=CATALOG_LIMIT,
            params=(like_pattern,)
        )

    def search_columns(self, like_pattern: str) -> ExecutionRequest:
        """Columns whose name matches an ILIKE pattern from translate_search_pattern."""
        statement = f"""
            SELECT
                table_schema AS schema_name,
                table_name,
                column_name,
                data_type
            FROM information_schema.columns
            WHERE table_schema NOT IN {_SYSTEM_SCHEMAS}
            AND column_name ILIKE %s
            ORDER BY table_schema, table_name, ordinal_position
        """
        return ExecutionRequest(
            statement=statement,
            requested_limit=CATALOG_LIMIT,
            params=(like_pattern,)
        )


def translate_search_pattern(pattern: str) -> str:
    """Translate a user wildcard pattern into an ILIKE pattern.

    ``*`` matches any run of characters and ``?`` a single character. A
    literal underscore is escaped so it only matches itself. Patterns
    without wildcards match as substrings.

    Raises:
        InvalidIdentifierError: If the pattern holds anything besides
            letters, digits, underscores and the two wildcards
    """
    if not isinstance(pattern, str) or len(pattern) > MAX_PATTERN_LENGTH \
            or not _SEARCH_PATTERN_RE.fullmatch(pattern):
        raise InvalidIdentifierError(
            str(pattern),
            f"Invalid search pattern '{pattern}': use letters, digits, underscores, "
            f"'*' and '?' only"
        )

    translated = pattern.replace('_', '\\_').replace('*', '%').replace('?', '_')
    if '*' not in pattern and '?' not in pattern:
        translated = f"%{translated}%"
    return translated
