"""Data models for the read-only PostgreSQL MCP Server."""

from .config import DatabaseConfig
from .error_types import (
    MCPError,
    ValidationError,
    LimitError,
    InvalidIdentifierError,
    UnsupportedAnalysisError,
    PoolExhaustedError,
    DatabaseError,
    ConnectionError
)

__all__ = [
    'DatabaseConfig',
    'MCPError',
    'ValidationError',
    'LimitError',
    'InvalidIdentifierError',
    'UnsupportedAnalysisError',
    'PoolExhaustedError',
    'DatabaseError',
    'ConnectionError'
]
