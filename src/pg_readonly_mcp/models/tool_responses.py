"""Pydantic models for MCP tool responses.

This module defines the result shapes returned by the bounded executor and
the MCP tools, so payloads stay consistent and JSON-serializable.
"""

from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field, ConfigDict


# ============================================================================
# Query results
# ============================================================================

class FieldInfo(BaseModel):
    """A result column as reported by the driver."""

    name: str = Field(..., description="Column label in the result set")
    data_type_id: int = Field(..., description="PostgreSQL type OID")


class QueryResult(BaseModel):
    """Rows and metadata produced by a single bounded execution."""

    rows: List[Dict[str, Any]] = Field(default_factory=list, description="Result rows")
    row_count: int = Field(..., ge=0, description="Number of rows returned")
    fields: List[FieldInfo] = Field(default_factory=list, description="Result columns in order")
    query: str = Field(..., description="Statement actually sent to the database")
    execution_time_ms: float = Field(0.0, ge=0, description="Round-trip time in milliseconds")
    limit_applied: Optional[int] = Field(None, description="Row ceiling used for this execution")
    truncated: bool = Field(False, description="More rows were available than the ceiling")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "rows": [{"id": 1, "name": "alice"}],
                "row_count": 1,
                "fields": [{"name": "id", "data_type_id": 23}, {"name": "name", "data_type_id": 25}],
                "query": "SELECT id, name FROM users\nLIMIT 100",
                "execution_time_ms": 1.84,
                "limit_applied": 100,
                "truncated": False
            }
        }
    )


# ============================================================================
# Schema descriptors
# ============================================================================

class ColumnDescriptor(BaseModel):
    """Column metadata read from information_schema."""

    name: str
    type: str
    nullable: bool


class TableDescriptor(BaseModel):
    """A table and its ordered columns."""

    schema_name: str
    name: str
    columns: List[ColumnDescriptor] = Field(default_factory=list)

    @property
    def qualified_name(self) -> str:
        return f"{self.schema_name}.{self.name}"


class SchemaDescriptor(BaseModel):
    """Read-only snapshot of the user tables in the database."""

    tables: List[TableDescriptor] = Field(default_factory=list)


# ============================================================================
# Tool payloads
# ============================================================================

class TableInfoResponse(BaseModel):
    """Response model for the get_table_info tool."""

    table_name: str
    schema_name: str
    columns: List[ColumnDescriptor]
    row_count: int = Field(..., ge=0)
    sample: List[Dict[str, Any]] = Field(default_factory=list, max_length=5)


class AnalysisResponse(BaseModel):
    """Response model for the analyze_data tool."""

    table_name: str
    analysis_type: Literal["summary", "distribution", "nulls", "duplicates", "trends"]
    result: List[Dict[str, Any]]
    row_count: int = Field(..., ge=0)
    column: Optional[str] = Field(None, description="Column the analysis grouped on, if any")


class ColumnMatch(BaseModel):
    """A column whose name matched a search pattern."""

    schema_name: str
    table_name: str
    column_name: str
    data_type: str


class SearchResponse(BaseModel):
    """Response model for the search_tables tool."""

    pattern: str
    search_type: Literal["tables", "columns", "both"]
    tables: List[str] = Field(default_factory=list)
    columns: List[ColumnMatch] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Payload returned to the client when a tool fails."""

    error: str
    error_type: str
    recoverable: bool
