"""Webhook HTTP server.

Routes:
    POST /alert    Alertmanager webhook receiver
    GET  /health   liveness probe
    GET  /metrics  Prometheus metrics

Response of ``POST /alert``:
    200  every alert was delivered (empty body)
    207  some deliveries failed (JSON summary)
    400  body is not a valid alert batch (error text)
    500  body could not be read, or every delivery failed
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

import aiohttp
from aiohttp import web
from prometheus_client import Counter, Histogram, generate_latest

from grafana_alert_mailer.receiver.models import AlertBatch, PayloadError

if TYPE_CHECKING:
    from grafana_alert_mailer.receiver.handler import AlertHandler

logger = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_HTTP_PORT = 8080
ALERT_ROUTE = "/alert"

REJECTED_REQUESTS = Counter(
    "alert_mailer_rejected_requests_total",
    "Webhook requests rejected before processing",
    ["reason"],
)

REQUEST_LATENCY = Histogram(
    "alert_mailer_request_duration_seconds",
    "Time spent handling a webhook request",
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
)


class AlertServer:
    """aiohttp server exposing the alert webhook.

    Example:
        ```python
        server = AlertServer(AlertHandler.from_settings(settings))
        await server.start(port=8080)
        ...
        await server.stop()
        ```
    """

    def __init__(self, handler: AlertHandler, *, host: str = DEFAULT_HOST) -> None:
        """Initialize the server.

        Args:
            handler: Orchestrator invoked for each decoded batch.
            host: Interface to bind.
        """
        self.handler = handler
        self.host = host
        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None

    @property
    def is_running(self) -> bool:
        """Return True if the server is accepting connections."""
        return self._runner is not None

    async def _handle_alert(self, request: web.Request) -> web.Response:
        """Handle POST /alert."""
        logger.info("Received %s request to %s", request.method, request.path)
        logger.debug("Request headers: %s", dict(request.headers))

        try:
            body = await request.read()
        except (OSError, aiohttp.ClientPayloadError) as e:
            logger.error("Error reading request body: %s", e)
            REJECTED_REQUESTS.labels(reason="read_error").inc()
            return web.Response(status=500, text="error reading request body")

        logger.debug("Request body:\n%s", body.decode("utf-8", errors="replace"))

        try:
            batch = AlertBatch.from_json(body)
        except PayloadError as e:
            logger.warning("Rejected webhook payload: %s", e)
            REJECTED_REQUESTS.labels(reason="bad_payload").inc()
            return web.Response(status=400, text=str(e))

        start = time.monotonic()
        result = await self.handler.handle_batch(batch)
        REQUEST_LATENCY.observe(time.monotonic() - start)

        if result.all_delivered:
            return web.Response(status=200)

        return web.json_response(result.to_dict(), status=result.status_code)

    async def _handle_health(self, _request: web.Request) -> web.Response:
        """Handle GET /health."""
        body: dict[str, Any] = {
            "status": "ok",
            "snapshot_mode": self.handler.snapshot_source.mode,
        }
        return web.json_response(body, status=200)

    async def _handle_metrics(self, _request: web.Request) -> web.Response:
        """Handle GET /metrics (Prometheus format)."""
        return web.Response(
            body=generate_latest(),
            content_type="text/plain",
            charset="utf-8",
        )

    def create_app(self) -> web.Application:
        """Create the aiohttp application."""
        app = web.Application()
        app.router.add_post(ALERT_ROUTE, self._handle_alert)
        app.router.add_get("/health", self._handle_health)
        app.router.add_get("/metrics", self._handle_metrics)
        return app

    async def start(self, port: int = DEFAULT_HTTP_PORT) -> None:
        """Start listening.

        Args:
            port: Port to listen on.
        """
        if self._runner:
            logger.warning("HTTP server already running")
            return

        self._app = self.create_app()
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()

        site = web.TCPSite(self._runner, self.host, port)
        await site.start()

        logger.info("Starting server on port %d", port)

    async def stop(self) -> None:
        """Stop accepting connections and wait for in-flight requests."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            self._app = None
            logger.info("HTTP server stopped")
