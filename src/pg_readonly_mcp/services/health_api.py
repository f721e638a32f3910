"""HTTP health endpoints served next to the MCP transport."""

from typing import Dict, Any, Optional, Tuple
from datetime import datetime
from fastapi import FastAPI, HTTPException
import uvicorn

from pg_readonly_mcp import __version__
from pg_readonly_mcp.lib.logging_config import get_logger
from pg_readonly_mcp.models.error_types import MCPError

logger = get_logger(__name__)

HEALTH_PROBE = "SELECT 1 AS health"


def _timestamp() -> str:
    return datetime.now().isoformat()


class HealthAPI:
    """FastAPI app reporting liveness, database reachability and tool call counters.

    The database probe runs through the bounded executor, so it is classified
    and waits for a pool slot like any tool query.
    """

    def __init__(self, db_service=None, executor=None, db_config=None,
                 host: str = "0.0.0.0", port: int = 8080):
        """
        Args:
            db_service: DatabaseService whose pool statistics are reported
            executor: BoundedExecutor that runs the probe
            db_config: DatabaseConfig whose (password-free) profile info is reported
            host: Bind address
            port: Bind port
        """
        self.db_service = db_service
        self.executor = executor
        self.db_config = db_config
        self.host = host
        self.port = port
        self.app = FastAPI(title="Read-only PostgreSQL MCP Health API", version=__version__)
        self.start_time = datetime.now()
        self.request_count = 0
        self.error_count = 0
        self._server: Optional[uvicorn.Server] = None

        self._setup_routes()

    @property
    def uptime_seconds(self) -> float:
        return (datetime.now() - self.start_time).total_seconds()

    def _setup_routes(self):

        @self.app.get("/health")
        async def health_check() -> Dict[str, Any]:
            """Liveness; degraded when the database probe fails."""
            healthy, _ = await self._probe()
            return {
                "status": "healthy" if healthy else "degraded",
                "timestamp": _timestamp(),
                "uptime_seconds": self.uptime_seconds,
                "version": __version__
            }

        @self.app.get("/health/database")
        async def database_health() -> Dict[str, Any]:
            """Probe result, pool usage and the active connection profile."""
            if not self.db_service or not self.executor:
                return {
                    "status": "unavailable",
                    "message": "Database service not configured"
                }

            healthy, error = await self._probe()
            report = {
                "status": "healthy" if healthy else "unhealthy",
                "connection_pool": self.db_service.pool_stats(),
                "profile": self.db_config.get_profile_info() if self.db_config else None,
                "timestamp": _timestamp()
            }
            if error:
                report["error"] = error
            return report

        @self.app.get("/health/metrics")
        async def health_metrics() -> Dict[str, Any]:
            """Tool call counts and error rate since startup."""
            uptime = self.uptime_seconds
            return {
                "metrics": {
                    "total_requests": self.request_count,
                    "total_errors": self.error_count,
                    "error_rate": self.error_count / max(self.request_count, 1),
                    "uptime_seconds": uptime,
                    "requests_per_second": self.request_count / max(uptime, 1)
                },
                "timestamp": _timestamp()
            }

        @self.app.get("/health/ready")
        async def readiness_check() -> Dict[str, Any]:
            """Readiness probe: 503 until the database answers."""
            healthy, _ = await self._probe()
            if not healthy:
                raise HTTPException(
                    status_code=503,
                    detail="Service not ready: database connection unavailable"
                )
            return {"ready": True, "timestamp": _timestamp()}

    async def _probe(self) -> Tuple[bool, Optional[str]]:
        """Run HEALTH_PROBE; returns (healthy, error message)."""
        if not self.executor:
            return False, None

        try:
            result = await self.executor.execute_sql(HEALTH_PROBE)
        except MCPError as e:
            logger.error(f"Database health probe failed: {e.message}")
            return False, e.message
        return bool(result.rows) and result.rows[0].get('health') == 1, None

    def update_metrics(self, request_success: bool = True):
        """Count one tool call, and one error if it failed."""
        self.request_count += 1
        if not request_success:
            self.error_count += 1

    async def run_async(self):
        """Serve on the running event loop, the one the MCP transport uses."""
        config = uvicorn.Config(self.app, host=self.host, port=self.port, log_level="warning")
        self._server = uvicorn.Server(config)
        logger.info(f"Starting Health API on {self.host}:{self.port}")
        await self._server.serve()

    def stop(self):
        """Ask uvicorn to exit after in-flight requests."""
        if self._server:
            logger.info("Stopping Health API")
            self._server.should_exit = True
