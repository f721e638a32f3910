"""Error types for the read-only PostgreSQL MCP Server."""

from typing import Optional


class MCPError(Exception):
    """Base error class for MCP operations."""

    def __init__(self, message: str, recoverable: bool = True):
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable


class ValidationError(MCPError):
    """Error raised when the statement classifier denies a query."""

    def __init__(self, reason: str):
        super().__init__(f"Query rejected: {reason}", recoverable=True)
        self.reason = reason


class LimitError(MCPError):
    """Error raised when a requested row limit is out of range."""

    def __init__(self, limit, maximum: int):
        super().__init__(
            f"Invalid row limit {limit!r}: must be an integer between 1 and {maximum}",
            recoverable=True
        )
        self.limit = limit
        self.maximum = maximum


class InvalidIdentifierError(MCPError):
    """Error raised when a table or column name fails sanitization."""

    def __init__(self, name: str, message: Optional[str] = None):
        if message is None:
            message = (
                f"Invalid identifier '{name}': only letters, digits and underscores "
                f"are allowed, optionally schema-qualified with a single dot"
            )
        super().__init__(message, recoverable=True)
        self.name = name


class UnsupportedAnalysisError(MCPError):
    """Error raised when an analysis kind cannot run against a table."""

    def __init__(self, analysis_type: str, message: str):
        super().__init__(message, recoverable=True)
        self.analysis_type = analysis_type


class PoolExhaustedError(MCPError):
    """Error raised when no pooled connection frees up in time."""

    def __init__(self, timeout: float):
        super().__init__(
            f"No database connection became available within {timeout:g}s; retry later",
            recoverable=True
        )
        self.timeout = timeout


class DatabaseError(MCPError):
    """Error raised when the driver or server reports a failure."""

    def __init__(self, message: str, recoverable: bool = True):
        super().__init__(message, recoverable=recoverable)


class ConnectionError(DatabaseError):
    """Error raised when the database connection pool cannot be established."""

    def __init__(self, message: str):
        super().__init__(message, recoverable=True)
