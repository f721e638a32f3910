"""Identifier sanitization for server-built SQL.

``sanitize`` is the only approved way to turn a caller-supplied table or
column name into SQL text. Names that fail the pattern are rejected; they
are never escaped and passed through.
"""

import re
from dataclasses import dataclass
from typing import Optional

from pg_readonly_mcp.models.error_types import InvalidIdentifierError

# PostgreSQL truncates identifiers longer than NAMEDATALEN - 1 bytes
MAX_IDENTIFIER_LENGTH = 63

_PART = r'[A-Za-z_][A-Za-z0-9_]*'
_QUALIFIED_NAME_RE = re.compile(r'(' + _PART + r')(?:\.(' + _PART + r'))?')
_SIMPLE_NAME_RE = re.compile(_PART)


@dataclass(frozen=True)
class Identifier:
    """A table or column name that passed sanitization.

    Construct through ``sanitize`` or ``sanitize_column``; the constructor
    re-checks every part so an Identifier can never hold unsafe text.
    """

    name: str
    schema: Optional[str] = None

    def __post_init__(self):
        for part in (self.schema, self.name):
            if part is None:
                continue
            if not isinstance(part, str) or not _SIMPLE_NAME_RE.fullmatch(part) \
                    or len(part) > MAX_IDENTIFIER_LENGTH:
                raise InvalidIdentifierError(str(part))

    @property
    def quoted(self) -> str:
        """SQL text for the identifier, e.g. ``"public"."users"``."""
        if self.schema:
            return f'"{self.schema}"."{self.name}"'
        return f'"{self.name}"'

    def with_default_schema(self, schema: str = 'public') -> 'Identifier':
        """Return a schema-qualified copy, keeping an explicit schema."""
        if self.schema:
            return self
        return Identifier(name=self.name, schema=schema)

    def __str__(self) -> str:
        if self.schema:
            return f"{self.schema}.{self.name}"
        return self.name


def sanitize(name: str) -> Identifier:
    """Validate a table name, optionally schema-qualified.

    Args:
        name: Untrusted name such as ``users`` or ``public.users``

    Returns:
        Sanitized Identifier

    Raises:
        InvalidIdentifierError: If the name fails the pattern check
    """
    if not isinstance(name, str):
        raise InvalidIdentifierError(repr(name))

    match = _QUALIFIED_NAME_RE.fullmatch(name)
    if not match:
        raise InvalidIdentifierError(name)

    if match.group(2) is None:
        return Identifier(name=match.group(1))
    return Identifier(name=match.group(2), schema=match.group(1))


def sanitize_column(name: str) -> Identifier:
    """Validate a column name (no schema qualifier allowed).

    Raises:
        InvalidIdentifierError: If the name fails the pattern check
    """
    if not isinstance(name, str) or not _SIMPLE_NAME_RE.fullmatch(name):
        raise InvalidIdentifierError(
            str(name),
            f"Invalid column name '{name}': only letters, digits and underscores are allowed"
        )
    return Identifier(name=name)


def require_identifier(value) -> Identifier:
    """Reject raw strings where a sanitized Identifier is required."""
    if not isinstance(value, Identifier):
        raise TypeError(
            f"expected a sanitized Identifier, got {type(value).__name__}; "
            f"pass the name through sanitize() first"
        )
    return value
