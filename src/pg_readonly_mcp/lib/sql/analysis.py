"""Analytical statement templates.

Templates are parametrized only by sanitized Identifiers and by values
picked from fixed sets, and their output goes through the classifier and the
bounded executor like any client query.
"""

from typing import List, NamedTuple, Optional

from pg_readonly_mcp.lib.sql.identifiers import Identifier, require_identifier
from pg_readonly_mcp.models.error_types import UnsupportedAnalysisError
from pg_readonly_mcp.models.query_types import ExecutionRequest

ANALYSIS_TYPES = ('summary', 'distribution', 'nulls', 'duplicates', 'trends')

DATE_TIME_TYPES = (
    'date',
    'timestamp without time zone',
    'timestamp with time zone',
)

TREND_BUCKETS = ('day', 'week', 'month', 'year')

DISTRIBUTION_LIMIT = 20
DUPLICATES_LIMIT = 100
TRENDS_LIMIT = 500


class AnalysisColumn(NamedTuple):
    """A sanitized column and its information_schema data type."""

    identifier: Identifier
    data_type: str


class AnalysisQuery(NamedTuple):
    """A built analysis statement plus the column it grouped on, if any."""

    request: ExecutionRequest
    column: Optional[Identifier] = None


class AnalysisQueryBuilder:
    """Builds summary/distribution/nulls/duplicates/trends statements."""

    def build(self, analysis_type: str, table: Identifier,
              columns: List[AnalysisColumn], bucket: str = 'month') -> AnalysisQuery:
        """Dispatch to the builder for one analysis kind.

        Args:
            analysis_type: One of ANALYSIS_TYPES
            table: Schema-qualified, sanitized table
            columns: The table's sanitized columns in ordinal order
            bucket: Time bucket for trends, one of TREND_BUCKETS

        Raises:
            UnsupportedAnalysisError: Unknown kind, or the table lacks what
                the kind needs
        """
        require_identifier(table)
        for column in columns:
            require_identifier(column.identifier)

        if analysis_type == 'summary':
            return AnalysisQuery(self.summary(table))
        if analysis_type not in ANALYSIS_TYPES:
            raise UnsupportedAnalysisError(
                str(analysis_type),
                f"Unknown analysis type '{analysis_type}'. Use one of: {', '.join(ANALYSIS_TYPES)}"
            )
        if not columns:
            raise UnsupportedAnalysisError(
                analysis_type, f"Table '{table}' has no columns to analyze"
            )

        if analysis_type == 'distribution':
            return AnalysisQuery(self.distribution(table, columns[0].identifier),
                                 columns[0].identifier)
        if analysis_type == 'nulls':
            return AnalysisQuery(self.nulls(table, [c.identifier for c in columns]))
        if analysis_type == 'duplicates':
            return AnalysisQuery(self.duplicates(table, [c.identifier for c in columns]))

        date_column = find_date_column(columns)
        if date_column is None:
            raise UnsupportedAnalysisError(
                'trends',
                f"Trend analysis needs a date or timestamp column; table '{table}' has none"
            )
        return AnalysisQuery(self.trends(table, date_column, bucket), date_column)

    def summary(self, table: Identifier) -> ExecutionRequest:
        """Row count and column count in a single row."""
        statement = f"""
            SELECT
                (SELECT COUNT(*) FROM {table.quoted}) AS row_count,
                (
                    SELECT COUNT(*)
                    FROM information_schema.columns
                    WHERE table_schema = %s
                    AND table_name = %s
                ) AS column_count
        """
        return ExecutionRequest(
            statement=statement,
            requested_limit=1,
            params=(table.schema, table.name)
        )

    def distribution(self, table: Identifier, column: Identifier) -> ExecutionRequest:
        statement = f"""
            SELECT
                {column.quoted} AS value,
                COUNT(*) AS count
            FROM {table.quoted}
            GROUP BY {column.quoted}
            ORDER BY count DESC
        """
        return ExecutionRequest(statement=statement, requested_limit=DISTRIBUTION_LIMIT)

    def nulls(self, table: Identifier, columns: List[Identifier]) -> ExecutionRequest:
        """Null counts per column via conditional aggregation.

        Each count is aliased ``null_<position>`` in the order of ``columns``.
        """
        counts = ",\n".join(
            f"SUM(CASE WHEN {column.quoted} IS NULL THEN 1 ELSE 0 END) AS null_{position}"
            for position, column in enumerate(columns)
        )
        statement = f"""
            SELECT
                COUNT(*) AS total_rows,
                {counts}
            FROM {table.quoted}
        """
        return ExecutionRequest(statement=statement, requested_limit=1)

    def duplicates(self, table: Identifier, columns: List[Identifier]) -> ExecutionRequest:
        column_list = ", ".join(column.quoted for column in columns)
        statement = f"""
            SELECT
                {column_list},
                COUNT(*) AS duplicate_count
            FROM {table.quoted}
            GROUP BY {column_list}
            HAVING COUNT(*) > 1
            ORDER BY duplicate_count DESC
        """
        return ExecutionRequest(statement=statement, requested_limit=DUPLICATES_LIMIT)

    def trends(self, table: Identifier, column: Identifier, bucket: str = 'month') -> ExecutionRequest:
        if bucket not in TREND_BUCKETS:
            raise UnsupportedAnalysisError(
                'trends',
                f"Unknown time bucket '{bucket}'. Use one of: {', '.join(TREND_BUCKETS)}"
            )
        statement = f"""
            SELECT
                DATE_TRUNC('{bucket}', {column.quoted}) AS period,
                COUNT(*) AS count
            FROM {table.quoted}
            WHERE {column.quoted} IS NOT NULL
            GROUP BY period
            ORDER BY period
        """
        return ExecutionRequest(statement=statement, requested_limit=TRENDS_LIMIT)


def find_date_column(columns: List[AnalysisColumn]) -> Optional[Identifier]:
    """First column typed as a date or timestamp, or None."""
    for column in columns:
        if column.data_type.lower() in DATE_TIME_TYPES:
            return column.identifier
    return None
