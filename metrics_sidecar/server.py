"""Scrape endpoint and control API using FastAPI."""
from typing import Optional
import logging
import time

from fastapi import FastAPI, HTTPException, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest
from pydantic import BaseModel

from metrics_sidecar.auth import BearerTokenMiddleware, BearerTokenProvider
from metrics_sidecar.errors import PushPipelineError
from metrics_sidecar.scheduler import PushScheduler
from metrics_sidecar.self_metrics import PushSelfMetrics
from metrics_sidecar.serializer import decompress_and_deserialize

logger = logging.getLogger(__name__)

METRICS_ROUTE = "/metrics"
PUBLISH_ROUTE = "/publish/metrics"


class LogLevelRequest(BaseModel):
    """Request to change log level."""
    level: str


class SidecarAPI:
    """FastAPI app serving the registry and controlling the side-car."""

    def __init__(
        self,
        registry: CollectorRegistry,
        scheduler: Optional[PushScheduler] = None,
        token_provider: Optional[BearerTokenProvider] = None,
        self_metrics: Optional[PushSelfMetrics] = None,
    ):
        """
        Initialize the API.

        Args:
            registry: Registry rendered on the scrape endpoint
            scheduler: Push scheduler reported on /status, if push is enabled
            token_provider: Allow-list gating /publish and /control routes;
                those routes are open when it is None
            self_metrics: Counters updated by the ingest route
        """
        self.registry = registry
        self.scheduler = scheduler
        self.token_provider = token_provider
        self.self_metrics = self_metrics
        self.start_time = time.time()
        self.app = FastAPI(title="Metrics Side-car")

        if token_provider is not None:
            self.app.add_middleware(BearerTokenMiddleware, allower=token_provider)
        else:
            logger.warning("No bearer token file configured, protected routes are open")

        self._setup_routes()

    def _setup_routes(self):
        """Setup API routes."""

        @self.app.get(METRICS_ROUTE)
        async def metrics():
            """Render the registry in the text exposition format."""
            try:
                return Response(generate_latest(self.registry), media_type=CONTENT_TYPE_LATEST)
            except Exception as e:
                logger.error(f"Unable to encode metrics: {e}")
                raise HTTPException(status_code=500, detail=f"unable to encode metrics: {e}")

        @self.app.get("/healthz")
        async def healthz():
            """Health check endpoint."""
            return {"status": "healthy", "timestamp": time.time()}

        @self.app.get("/status")
        async def status():
            """Get current push status."""
            status_info = {"uptime_seconds": time.time() - self.start_time}
            if self.scheduler is None:
                status_info["push"] = "disabled"
            else:
                status_info["push"] = self.scheduler.status()
            return status_info

        @self.app.post(PUBLISH_ROUTE)
        async def publish(request: Request):
            """Accept a snappy-compressed Remote-Write payload."""
            body = await request.body()
            try:
                write_request = decompress_and_deserialize(body)
            except PushPipelineError as e:
                logger.warning(f"Rejected remote write payload: {e}")
                raise HTTPException(status_code=400, detail=str(e))

            series_count = len(write_request.timeseries)
            if self.self_metrics:
                self.self_metrics.record_received(series_count)

            logger.debug(
                f"Received {series_count} timeseries and "
                f"{len(write_request.metadata)} metadata records"
            )
            return {"status": "accepted", "timeseries": series_count}

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

    def run(self, host: str = "0.0.0.0", port: int = 9185):
        """Run the API server."""
        import uvicorn
        uvicorn.run(self.app, host=host, port=port, log_level="info")
