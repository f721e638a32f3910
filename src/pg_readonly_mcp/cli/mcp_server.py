"""MCP server entry point for read-only PostgreSQL access."""

import sys
import os
import argparse
import asyncio
import signal
from typing import Dict, Any, List, Optional, Union

from fastmcp import FastMCP

from pg_readonly_mcp.lib.logging_config import setup_logging, get_logger, log_error_with_context
from pg_readonly_mcp.lib.sql.introspection import IntrospectionQueryBuilder
from pg_readonly_mcp.lib.tools import (
    execute_sql, get_table_info, analyze_data, search_tables,
    get_schema, list_table_names
)
from pg_readonly_mcp.models.config import DatabaseConfig
from pg_readonly_mcp.models.error_types import MCPError
from pg_readonly_mcp.models.tool_responses import ErrorResponse
from pg_readonly_mcp.services.database_service import DatabaseService
from pg_readonly_mcp.services.health_api import HealthAPI
from pg_readonly_mcp.services.query_executor import BoundedExecutor

logger = get_logger(__name__)

SERVER_NAME = "Read-only PostgreSQL MCP Server"


def error_payload(error: Exception, tool_name: str, db_service: Optional[DatabaseService] = None) -> Dict[str, Any]:
    """Convert an exception raised by a tool into the error dictionary returned to the client.

    MCPError subclasses keep their message, class name and recoverability.
    Anything else is reported as a non-recoverable internal error.
    """
    if isinstance(error, MCPError):
        logger.error(f"MCP error in {tool_name}: {error.message}")
        return ErrorResponse(
            error=error.message,
            error_type=type(error).__name__,
            recoverable=error.recoverable
        ).model_dump()

    message = str(error)
    if db_service:
        message = db_service.redact(message)
    log_error_with_context(error, {'tool': tool_name}, logger)
    return ErrorResponse(
        error=f"Unexpected error: {message}",
        error_type='InternalError',
        recoverable=False
    ).model_dump()


def create_server(db_service: DatabaseService,
                  health_api: Optional[HealthAPI] = None,
                  executor: Optional[BoundedExecutor] = None,
                  default_schema: str = 'public') -> FastMCP:
    """Build the MCP server around an already constructed database service.

    Args:
        db_service: Database service every tool executes through
        health_api: Optional health API whose request counters are updated per call
        executor: Bounded executor (default: one over db_service)
        default_schema: Schema assumed for unqualified table names

    Returns:
        FastMCP instance with the tools and resources registered
    """
    mcp = FastMCP(SERVER_NAME)
    executor = executor or BoundedExecutor(db_service)
    builder = IntrospectionQueryBuilder(default_schema=default_schema)

    async def run_tool(tool_name: str, call) -> Union[Dict[str, Any], List[str]]:
        try:
            result = await call
        except Exception as e:
            if health_api:
                health_api.update_metrics(request_success=False)
            return error_payload(e, tool_name, db_service)
        if health_api:
            health_api.update_metrics(request_success=True)
        return result

    @mcp.tool(name="execute_sql")
    async def execute_sql_tool(query: str, limit: Any = None) -> Dict[str, Any]:
        """Execute a read-only SQL statement.

        Only SELECT, WITH ... SELECT, EXPLAIN, SHOW and DESCRIBE statements are
        accepted. Anything that could modify data or schema is rejected before
        it reaches the database.

        Args:
            query: A single SQL statement
            limit: Optional result limit, an integer (default: 100, max: 1000)

        Returns:
            Dictionary containing:
            - rows: Query results
            - row_count: Number of rows returned
            - fields: Column names and type OIDs
            - query: Executed statement (possibly with a LIMIT appended)
            - execution_time_ms: Query execution time
            - limit_applied: Row ceiling used
            - truncated: Whether more rows were available
        """
        return await run_tool("execute_sql", execute_sql(executor, query, limit))

    @mcp.tool(name="get_table_info")
    async def get_table_info_tool(table_name: str) -> Dict[str, Any]:
        """Describe a table: columns, exact row count and up to 5 sample rows.

        Args:
            table_name: Table name, optionally schema-qualified (e.g. 'sales.orders')

        Returns:
            Dictionary containing:
            - table_name: Name of the table
            - schema_name: Schema of the table
            - columns: List of column details (name, type, nullable)
            - row_count: Number of rows
            - sample: Up to 5 rows
        """
        return await run_tool("get_table_info", get_table_info(executor, table_name, builder))

    @mcp.tool(name="analyze_data")
    async def analyze_data_tool(table_name: str, analysis_type: str, bucket: str = 'month') -> Dict[str, Any]:
        """Run a fixed analysis over a table.

        Analysis types:
            - summary: row count and column count
            - distribution: most frequent values of the first column
            - nulls: null count and percentage per column
            - duplicates: rows that appear more than once
            - trends: row counts per time bucket of the first date/time column

        Args:
            table_name: Table name, optionally schema-qualified
            analysis_type: One of summary, distribution, nulls, duplicates, trends
            bucket: Time bucket for trends: day, week, month (default) or year

        Returns:
            Dictionary containing:
            - table_name: Qualified table name
            - analysis_type: The analysis that ran
            - result: Analysis rows
        """
        return await run_tool(
            "analyze_data",
            analyze_data(executor, table_name, analysis_type, bucket=bucket, builder=builder)
        )

    @mcp.tool(name="search_tables")
    async def search_tables_tool(pattern: str, search_type: str = 'both') -> Dict[str, Any]:
        """Search table and column names.

        '*' matches any run of characters and '?' a single character. A pattern
        without wildcards matches anywhere in the name. Matching is case-insensitive.

        Args:
            pattern: Letters, digits, underscores, '*' and '?'
            search_type: 'tables', 'columns' or 'both' (default)

        Returns:
            Dictionary containing:
            - tables: Matching 'schema.table' names
            - columns: Matching columns with their table and data type
        """
        return await run_tool(
            "search_tables",
            search_tables(executor, pattern, search_type, builder=builder)
        )

    @mcp.resource("postgres://schema", name="schema", mime_type="application/json")
    async def schema_resource() -> Dict[str, Any]:
        """Every user table with its columns."""
        return await run_tool("postgres://schema", get_schema(executor, builder))

    @mcp.resource("postgres://tables", name="tables", mime_type="application/json")
    async def tables_resource() -> Union[Dict[str, Any], List[str]]:
        """Flat list of user tables as 'schema.table' names."""
        return await run_tool("postgres://tables", list_table_names(executor, builder))

    return mcp


def install_shutdown_handlers(health_api: Optional[HealthAPI] = None):
    """Exit on SIGTERM/SIGINT so the database service context closes the pool."""

    def shutdown_handler(signum, frame):
        logger.info(f"Received signal {signum}, initiating graceful shutdown...")
        if health_api:
            health_api.stop()
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown_handler)
    signal.signal(signal.SIGTERM, shutdown_handler)


async def serve(mcp: FastMCP, args: argparse.Namespace, health_api: Optional[HealthAPI] = None):
    """Run the MCP transport and the health API on one event loop.

    When either finishes the other is cancelled.
    """
    if args.transport == "stdio":
        logger.info("Starting MCP server in stdio mode...")
        transport = mcp.run_async(transport="stdio")
    else:
        logger.info(f"Starting MCP server in SSE mode on {args.host}:{args.port}")
        transport = mcp.run_async(transport="sse", host=args.host, port=args.port)

    tasks = [asyncio.create_task(transport, name="mcp-transport")]
    if health_api:
        tasks.append(asyncio.create_task(health_api.run_async(), name="health-api"))

    done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    for task in pending:
        task.cancel()
    await asyncio.gather(*pending, return_exceptions=True)
    for task in done:
        task.result()


def build_parser() -> argparse.ArgumentParser:
    """Command line arguments for the server."""
    parser = argparse.ArgumentParser(description=SERVER_NAME)
    parser.add_argument(
        "connection_string",
        nargs="?",
        default=None,
        help="PostgreSQL connection URI (default: from environment or config/databases.yaml)"
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "sse"],
        default="stdio",
        help="Transport mode: stdio (default) or sse"
    )
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Host for SSE server and health API (default: 0.0.0.0)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=3000,
        help="Port for SSE server (default: 3000)"
    )
    parser.add_argument(
        "--health-port",
        type=int,
        default=8080,
        help="Port for health API (default: 8080)"
    )
    parser.add_argument(
        "--no-health-api",
        action="store_true",
        help="Disable health API service"
    )
    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point for the MCP server."""
    args = build_parser().parse_args(argv)

    setup_logging(
        level=os.getenv('LOG_LEVEL', 'INFO'),
        json_format=os.getenv('LOG_JSON', 'false').lower() == 'true',
        log_file=os.getenv('LOG_FILE')
    )

    try:
        config = DatabaseConfig(connection_string=args.connection_string)
        config.validate()
    except ValueError as e:
        logger.error(f"Invalid database configuration: {e}")
        sys.exit(1)

    logger.info(f"Using database {config.redacted_uri()}")
    db_service = DatabaseService(
        config.to_dict(),
        pool_size=config.pool_size,
        pool_timeout=config.pool_timeout
    )

    try:
        with db_service:
            executor = BoundedExecutor(db_service)

            health_api = None
            if not args.no_health_api:
                health_api = HealthAPI(
                    db_service=db_service,
                    executor=executor,
                    db_config=config,
                    host=args.host,
                    port=args.health_port
                )

            install_shutdown_handlers(health_api)
            mcp = create_server(db_service, health_api=health_api, executor=executor)
            asyncio.run(serve(mcp, args, health_api))

    except KeyboardInterrupt:
        logger.info("Server shutdown requested via keyboard interrupt")
    except MCPError as e:
        logger.error(f"Failed to start server: {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    main()
