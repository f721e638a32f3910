"""Business logic services for the read-only PostgreSQL MCP Server."""

from .database_service import DatabaseService
from .query_executor import BoundedExecutor
from .health_api import HealthAPI

__all__ = [
    'DatabaseService',
    'BoundedExecutor',
    'HealthAPI'
]
