"""Control API for runtime management using FastAPI."""
from typing import Optional
import logging
import time

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from dogmetrics.client import DatadogError
from dogmetrics.reporter import MetricsReporter

logger = logging.getLogger(__name__)


class LogLevelRequest(BaseModel):
    """Request to change log level."""
    level: str


class ControlAPI:
    """FastAPI-based control API for a running reporter."""

    def __init__(self, reporter: MetricsReporter, interval_s: Optional[float] = None):
        """
        Initialize control API.

        Args:
            reporter: The reporter to inspect and drive
            interval_s: Reporting interval, shown in ``/status``
        """
        self.reporter = reporter
        self.interval_s = interval_s
        self.start_time = time.time()
        self.app = FastAPI(title="Datadog Metrics Reporter Control API")

        self._setup_routes()

    def _setup_routes(self):
        """Setup API routes."""

        @self.app.get("/healthz")
        async def healthz():
            """Health check endpoint."""
            return {"status": "healthy", "timestamp": time.time()}

        @self.app.get("/status")
        async def status():
            """Get current reporter status."""
            return {
                "uptime_seconds": time.time() - self.start_time,
                "running": self.reporter.running,
                "host": self.reporter.client.host,
                "interval_s": self.interval_s,
                "report_count": self.reporter.report_count,
                "error_count": self.reporter.error_count,
                "last_error": self.reporter.last_error,
                "last_report_time": self.reporter.last_report_time,
                "metrics": self.reporter.registry.names(),
            }

        @self.app.get("/series")
        def preview_series():
            """Payload the next report would send, without sending it."""
            return self.reporter.client.series_payload(self.reporter.series())

        @self.app.post("/control/report")
        def report_now():
            """Run one report cycle immediately."""
            try:
                self.reporter.report()
            except DatadogError as e:
                logger.error(f"Datadog series error: {e}")
                raise HTTPException(status_code=502, detail=str(e))

            return {
                "status": "reported",
                "report_count": self.reporter.report_count,
                "timestamp": time.time(),
            }

        @self.app.post("/control/loglevel")
        async def set_log_level(request: LogLevelRequest):
            """Change log level at runtime."""
            level = request.level.upper()

            if level not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
                raise HTTPException(
                    status_code=400,
                    detail=f"Invalid log level: {level}"
                )

            logging.getLogger().setLevel(getattr(logging, level))
            logger.info(f"Log level changed to: {level}")

            return {
                "status": "log_level_changed",
                "level": level,
                "timestamp": time.time()
            }

    def run(self, host: str = "0.0.0.0", port: int = 8081):
        """Run the API server."""
        import uvicorn
        uvicorn.run(self.app, host=host, port=port, log_level="info")
