"""SQL statement classification for the read-only PostgreSQL MCP Server.

Every statement that reaches the database, whether written by the client or
built by the server, is classified here first. Classification has three
stages:

1. The statement *shape*: the first token must be an allowed keyword.
2. The statement *structure*, from the PostgreSQL parser (pglast): the body
   of a WITH statement, every common table expression and the target of an
   EXPLAIN must be plain SELECTs, and SELECT ... INTO is refused.
3. The full raw text is scanned for deny-listed keywords, stacked statements
   and state-changing function calls. This scan covers string literals,
   quoted identifiers and comments too, so anything ambiguous is denied.

Text the parser rejects is denied after the content scan has had a chance
to name the offending keyword. The keyword sets below are data; extending
them does not touch the classifier.
"""

import itertools
import re
from typing import Optional

import pglast

from pg_readonly_mcp.models.error_types import ValidationError
from pg_readonly_mcp.models.query_types import (
    Allowed,
    Denied,
    SqlStatement,
    ValidationVerdict,
)

ALLOWED_LEADING_KEYWORDS = ('SELECT', 'WITH', 'EXPLAIN', 'SHOW', 'DESCRIBE')

# Statements allowed as a WITH body, a CTE query or an EXPLAIN target
ALLOWED_NESTED_KEYWORDS = ('SELECT',)

# Accepted by shape only: not PostgreSQL grammar, the server rejects it
UNPARSED_KEYWORDS = ('DESCRIBE',)

DENIED_KEYWORDS = (
    'INSERT', 'UPDATE', 'DELETE', 'DROP', 'CREATE', 'ALTER',
    'TRUNCATE', 'GRANT', 'REVOKE', 'EXECUTE', 'CALL', 'COPY',
    # SELECT ... INTO creates a table; MERGE writes from inside a CTE on PG17+
    'MERGE', 'INTO',
)

# Functions that change server state or reach outside the database
DENIED_FUNCTIONS = (
    'DBLINK_EXEC', 'DBLINK_CONNECT', 'DBLINK_DISCONNECT',
    'PG_RELOAD_CONF', 'PG_ROTATE_LOGFILE', 'PG_CANCEL_BACKEND',
    'PG_TERMINATE_BACKEND', 'PG_FILE_WRITE', 'PG_FILE_UNLINK',
    'PG_FILE_RENAME', 'COPY_FILE', 'PG_READ_FILE', 'PG_READ_BINARY_FILE',
    'LO_IMPORT', 'LO_EXPORT', 'LO_UNLINK', 'LO_CREATE', 'LO_CREAT',
    'LO_FROM_BYTEA', 'LO_PUT', 'LO_TRUNCATE', 'LO_TRUNCATE64',
    'NEXTVAL', 'SETVAL', 'SET_CONFIG',
)

# Parse tree node types and the keyword that introduces them
STATEMENT_KEYWORDS = {
    'SelectStmt': 'SELECT',
    'ExplainStmt': 'EXPLAIN',
    'VariableShowStmt': 'SHOW',
    'InsertStmt': 'INSERT',
    'UpdateStmt': 'UPDATE',
    'DeleteStmt': 'DELETE',
    'MergeStmt': 'MERGE',
}

_DENIED_KEYWORD_RE = re.compile(r'\b(' + '|'.join(DENIED_KEYWORDS) + r')\b', re.IGNORECASE)
_DENIED_FUNCTION_RE = re.compile(r'\b(' + '|'.join(DENIED_FUNCTIONS) + r')\s*\(', re.IGNORECASE)
_STACKED_STATEMENT_RE = re.compile(r';\s*\S')
_LEADING_NOISE_RE = re.compile(r"(?:\s+|--[^\n]*|/\*.*?\*/)*", re.DOTALL)
_WORD_RE = re.compile(r'[A-Za-z_][A-Za-z0-9_$]*')
_PLACEHOLDER_RE = re.compile(r"%s")


def classify(sql: str, placeholders: bool = False) -> ValidationVerdict:
    """Decide whether a raw SQL string may execute.

    Never raises for malformed input: anything that cannot be classified is
    itself a Denied verdict.

    Args:
        sql: Raw statement text
        placeholders: The text carries psycopg2 %s placeholders for bound
            parameters

    Returns:
        Allowed, or Denied carrying the violated rule
    """
    if sql is None or not isinstance(sql, str) or not sql.strip():
        return Denied("empty query")

    leading = _leading_keyword(sql)
    if leading not in ALLOWED_LEADING_KEYWORDS:
        return Denied(_shape_reason(leading))

    tree = None if leading in UNPARSED_KEYWORDS else _parse(sql, placeholders)
    if tree:
        denial = _structure_denial(tree[0].stmt)
        if denial:
            return denial

    match = _DENIED_KEYWORD_RE.search(sql)
    if match:
        return Denied(_operation_reason(match.group(1).upper()))

    if _STACKED_STATEMENT_RE.search(sql) or (tree and len(tree) > 1):
        return Denied(_operation_reason("multiple statements"))

    match = _DENIED_FUNCTION_RE.search(sql)
    if match:
        return Denied(_operation_reason(f"{match.group(1).lower()}()"))

    if not tree and leading not in UNPARSED_KEYWORDS:
        if leading == 'WITH':
            return Denied("malformed common table expression")
        return Denied("statement could not be parsed")

    return Allowed()


def validate_statement(sql: str, placeholders: bool = False) -> SqlStatement:
    """Classify a statement and raise if it is denied.

    Raises:
        ValidationError: If the classifier denies the statement
    """
    verdict = classify(sql, placeholders)
    if isinstance(verdict, Denied):
        raise ValidationError(verdict.reason)
    return parse_statement(sql, placeholders)


def parse_statement(sql: str, placeholders: bool = False) -> SqlStatement:
    """Derive the keyword metadata of a statement without judging it."""
    leading = _leading_keyword(sql)
    effective = None
    has_row_limit = False
    if leading in UNPARSED_KEYWORDS:
        effective = leading
    else:
        tree = _parse(sql, placeholders)
        if tree:
            stmt = tree[0].stmt
            effective = _statement_keyword(stmt)
            # FETCH FIRST also lands in limitCount
            has_row_limit = effective == 'SELECT' and (
                stmt.limitCount is not None or stmt.limitOffset is not None
            )
    return SqlStatement(
        text=sql,
        normalized=sql.strip().upper(),
        leading_keyword=leading,
        effective_keyword=effective,
        has_row_limit=has_row_limit
    )


def _leading_keyword(sql: str) -> str:
    """First word after whitespace and comments, upper-cased; '' if the text opens otherwise."""
    start = _LEADING_NOISE_RE.match(sql).end()
    match = _WORD_RE.match(sql, start)
    return match.group(0).upper() if match else ''


def _parse(sql: str, placeholders: bool = False) -> Optional[tuple]:
    """RawStmt nodes of the statement, or None if PostgreSQL would not parse it."""
    if placeholders:
        # psycopg2 %s becomes the server-side $n form the grammar knows
        numbers = itertools.count(1)
        sql = _PLACEHOLDER_RE.sub(lambda match: f"${next(numbers)}", sql)
    try:
        return pglast.parse_sql(sql)
    except pglast.Error:
        return None


def _statement_keyword(node) -> str:
    name = type(node).__name__
    return STATEMENT_KEYWORDS.get(name, name)


def _structure_denial(stmt) -> Optional[Denied]:
    """Check the parts of a parsed statement that the leading keyword hides."""
    keyword = _statement_keyword(stmt)
    if keyword not in ALLOWED_NESTED_KEYWORDS and keyword not in ('EXPLAIN', 'SHOW'):
        return Denied(_shape_reason(keyword))

    with_clause = getattr(stmt, 'withClause', None)
    for cte in (with_clause.ctes if with_clause else None) or ():
        cte_keyword = _statement_keyword(cte.ctequery)
        if cte_keyword not in ALLOWED_NESTED_KEYWORDS:
            return Denied(_operation_reason(cte_keyword))
        denial = _structure_denial(cte.ctequery)
        if denial:
            return denial

    if keyword == 'EXPLAIN':
        target = _statement_keyword(stmt.query)
        if target not in ALLOWED_NESTED_KEYWORDS:
            return Denied(_operation_reason(target))
        return _structure_denial(stmt.query)

    if getattr(stmt, 'intoClause', None) is not None:
        return Denied(_operation_reason('INTO'))
    return None


def _shape_reason(keyword: str) -> str:
    if not keyword:
        return "only read-only statements are permitted: statement does not start with a keyword"
    return f"only read-only statements are permitted: {keyword}"


def _operation_reason(operation: str) -> str:
    return f"statement contains a disallowed operation: {operation}"
