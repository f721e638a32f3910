#!/usr/bin/env python3
"""Launcher for the read-only PostgreSQL MCP Server.

Thin wrapper that runs ``python -m pg_readonly_mcp.cli.mcp_server`` with
arguments translated from a transport-first command line:

    python run.py stdio
    python run.py stdio --database postgresql://reader@localhost:5432/shop
    python run.py sse --port 3000 --health-port 8080
    LOG_LEVEL=DEBUG python run.py sse --no-health-api
"""

import sys
import subprocess
import argparse

SERVER_MODULE = "pg_readonly_mcp.cli.mcp_server"
DEFAULT_HEALTH_PORT = 8080


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Read-only PostgreSQL MCP Server",
        epilog="Connection settings default to DATABASE_URI, config/databases.yaml or DB_* variables."
    )
    parser.add_argument("transport", choices=["stdio", "sse"],
                        help="stdio for local clients, sse for HTTP streaming")
    parser.add_argument("--database", help="PostgreSQL connection URI")
    parser.add_argument("--host", default="0.0.0.0", help="Bind address (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=3000, help="SSE port (default: 3000)")
    parser.add_argument("--health-port", type=int, default=DEFAULT_HEALTH_PORT,
                        help=f"Health API port (default: {DEFAULT_HEALTH_PORT})")
    parser.add_argument("--no-health-api", action="store_true", help="Do not start the health API")
    return parser.parse_args(argv)


def build_command(args: argparse.Namespace) -> list:
    """Server command line for the parsed launcher arguments."""
    cmd = [sys.executable, "-m", SERVER_MODULE, "--transport", args.transport, "--host", args.host]
    if args.database:
        cmd.append(args.database)
    if args.transport == "sse":
        cmd.extend(["--port", str(args.port)])
    if args.no_health_api:
        cmd.append("--no-health-api")
    else:
        cmd.extend(["--health-port", str(args.health_port)])
    return cmd


def main(argv=None):
    args = parse_args(argv)

    # stdout belongs to the stdio transport
    print(f"Starting read-only PostgreSQL MCP Server ({args.transport})", file=sys.stderr)
    if args.transport == "sse":
        print(f"   MCP endpoint: http://{args.host}:{args.port}/sse", file=sys.stderr)
    if not args.no_health_api:
        print(f"   Health API:   http://{args.host}:{args.health_port}/health", file=sys.stderr)

    try:
        completed = subprocess.run(build_command(args))
    except KeyboardInterrupt:
        print("\nServer stopped", file=sys.stderr)
        sys.exit(0)
    sys.exit(completed.returncode)


if __name__ == "__main__":
    main()
