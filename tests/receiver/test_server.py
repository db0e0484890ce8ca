"""Tests for the webhook HTTP server."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer

from grafana_alert_mailer.notifier.mailer import MailDeliveryError
from grafana_alert_mailer.receiver.handler import AlertHandler
from grafana_alert_mailer.receiver.server import ALERT_ROUTE, AlertServer
from grafana_alert_mailer.snapshot.client import LinkSnapshotClient

CPU_ALERT = {
    "status": "firing",
    "labels": {"alertname": "HighCPULoad"},
    "annotations": {"summary": "CPU high", "description": "92%"},
}


def grafana_transport(requests: list[httpx.Request]) -> httpx.MockTransport:
    """Grafana stub answering the dashboard fetch and snapshot creation."""

    def handle(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.method == "GET":
            return httpx.Response(200, json={"dashboard": {"uid": "node-exporter"}})
        return httpx.Response(200, json={"url": "https://x/y"})

    return httpx.MockTransport(handle)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def grafana_requests() -> list[httpx.Request]:
    """Requests received by the Grafana stub."""
    return []


@pytest.fixture
def mailer() -> MagicMock:
    """Create a mailer that always succeeds."""
    mailer = MagicMock()
    mailer.deliver = AsyncMock(return_value=None)
    return mailer


@pytest.fixture
def server(grafana_requests: list[httpx.Request], mailer: MagicMock) -> AlertServer:
    """Create a server backed by the Grafana stub and the mock mailer."""
    source = LinkSnapshotClient(
        "http://grafana:3000",
        "glsa_secret",
        transport=grafana_transport(grafana_requests),
    )
    return AlertServer(AlertHandler(source, mailer, dashboard_uid="node-exporter"))


@pytest.fixture
def app(server: AlertServer) -> web.Application:
    """Create the aiohttp application."""
    return server.create_app()


# ============================================================================
# Webhook Tests
# ============================================================================


class TestAlertEndpoint:
    """Tests for POST /alert."""

    async def test_firing_alert_end_to_end(
        self,
        app: web.Application,
        grafana_requests: list[httpx.Request],
        mailer: MagicMock,
    ) -> None:
        """Test one alert becomes one email carrying the snapshot link."""
        async with TestClient(TestServer(app)) as client:
            resp = await client.post(ALERT_ROUTE, json={"alerts": [CPU_ALERT]})
            assert resp.status == 200
            assert await resp.text() == ""

        assert len(grafana_requests) == 2
        mailer.deliver.assert_awaited_once()
        message = mailer.deliver.await_args.args[0]
        assert message.subject == "Monitor Alert: CPU high"
        assert 'href="https://x/y"' in message.html_body
        assert "<h1>CPU high</h1><p>92%</p>" in message.html_body

    async def test_multiple_alerts_processed_in_order(
        self, app: web.Application, mailer: MagicMock
    ) -> None:
        """Test every alert of the batch is mailed, in order."""
        second = {"status": "firing", "annotations": {"summary": "Disk full"}}

        async with TestClient(TestServer(app)) as client:
            resp = await client.post(ALERT_ROUTE, json={"alerts": [CPU_ALERT, second]})
            assert resp.status == 200

        subjects = [call.args[0].subject for call in mailer.deliver.await_args_list]
        assert subjects == ["Monitor Alert: CPU high", "Monitor Alert: Disk full"]

    async def test_empty_batch(
        self,
        app: web.Application,
        grafana_requests: list[httpx.Request],
        mailer: MagicMock,
    ) -> None:
        """Test an empty batch succeeds without side effects."""
        async with TestClient(TestServer(app)) as client:
            resp = await client.post(ALERT_ROUTE, json={"alerts": []})
            assert resp.status == 200

        assert grafana_requests == []
        mailer.deliver.assert_not_awaited()

    async def test_invalid_json_rejected(
        self,
        app: web.Application,
        grafana_requests: list[httpx.Request],
        mailer: MagicMock,
    ) -> None:
        """Test a malformed body is rejected before any outbound call."""
        async with TestClient(TestServer(app)) as client:
            resp = await client.post(ALERT_ROUTE, data=b"{not json")
            assert resp.status == 400
            assert "invalid JSON" in await resp.text()

        assert grafana_requests == []
        mailer.deliver.assert_not_awaited()

    async def test_missing_alerts_rejected(
        self, app: web.Application, mailer: MagicMock
    ) -> None:
        """Test a body without alerts is rejected."""
        async with TestClient(TestServer(app)) as client:
            resp = await client.post(ALERT_ROUTE, json={"status": "firing"})
            assert resp.status == 400

        mailer.deliver.assert_not_awaited()

    async def test_unreadable_body(self, app: web.Application, mailer: MagicMock) -> None:
        """Test a body read failure returns 500."""
        with patch.object(web.Request, "read", AsyncMock(side_effect=OSError("reset"))):
            async with TestClient(TestServer(app)) as client:
                resp = await client.post(ALERT_ROUTE, json={"alerts": [CPU_ALERT]})
                assert resp.status == 500
                assert await resp.text() == "error reading request body"

        mailer.deliver.assert_not_awaited()

    async def test_snapshot_failure_still_delivers(self, mailer: MagicMock) -> None:
        """Test an unreachable Grafana degrades to the placeholder."""

        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        source = LinkSnapshotClient(
            "http://grafana:3000", "glsa_secret", transport=httpx.MockTransport(refuse)
        )
        app = AlertServer(AlertHandler(source, mailer, dashboard_uid="d")).create_app()

        async with TestClient(TestServer(app)) as client:
            resp = await client.post(ALERT_ROUTE, json={"alerts": [CPU_ALERT]})
            assert resp.status == 200

        message = mailer.deliver.await_args.args[0]
        assert "failed to get snapshot url" in message.html_body

    async def test_partial_delivery_failure(
        self, app: web.Application, mailer: MagicMock
    ) -> None:
        """Test mixed outcomes return 207 with a per-alert summary."""
        mailer.deliver.side_effect = [None, MailDeliveryError("failed to send email: refused")]
        second = {"status": "firing", "annotations": {"summary": "Disk full"}}

        async with TestClient(TestServer(app)) as client:
            resp = await client.post(ALERT_ROUTE, json={"alerts": [CPU_ALERT, second]})
            assert resp.status == 207
            data = await resp.json()

        assert data["delivered"] == 1
        assert data["failed"] == 1
        assert data["alerts"][1]["summary"] == "Disk full"
        assert data["alerts"][1]["outcome"] == "delivery_failed"

    async def test_all_deliveries_failed(self, app: web.Application, mailer: MagicMock) -> None:
        """Test a batch with no delivered alert returns 500."""
        mailer.deliver.side_effect = MailDeliveryError("failed to send email: refused")

        async with TestClient(TestServer(app)) as client:
            resp = await client.post(ALERT_ROUTE, data=json.dumps({"alerts": [CPU_ALERT]}))
            assert resp.status == 500
            data = await resp.json()

        assert data["failed"] == 1
        assert data["alerts"][0]["error"] == "failed to send email: refused"

    async def test_get_not_allowed(self, app: web.Application) -> None:
        """Test the webhook only accepts POST."""
        async with TestClient(TestServer(app)) as client:
            resp = await client.get(ALERT_ROUTE)
            assert resp.status == 405


# ============================================================================
# Auxiliary Endpoint Tests
# ============================================================================


class TestAuxiliaryEndpoints:
    """Tests for /health and /metrics."""

    async def test_health(self, app: web.Application) -> None:
        """Test the liveness probe."""
        async with TestClient(TestServer(app)) as client:
            resp = await client.get("/health")
            assert resp.status == 200

            data = await resp.json()
            assert data == {"status": "ok", "snapshot_mode": "link"}

    async def test_metrics(self, app: web.Application) -> None:
        """Test /metrics returns Prometheus format."""
        async with TestClient(TestServer(app)) as client:
            await client.post(ALERT_ROUTE, json={"alerts": [CPU_ALERT]})

            resp = await client.get("/metrics")
            assert resp.status == 200
            assert "text/plain" in resp.headers.get("Content-Type", "")

            text = await resp.text()
            assert "alert_mailer_alerts_received_total" in text
            assert "alert_mailer_notifications_total" in text
            assert "alert_mailer_request_duration_seconds" in text


# ============================================================================
# Lifecycle Tests
# ============================================================================


class TestLifecycle:
    """Tests for starting and stopping the server."""

    async def test_start_and_stop(self, server: AlertServer, unused_tcp_port: int) -> None:
        """Test the server binds and releases its port."""
        assert server.is_running is False

        await server.start(port=unused_tcp_port)
        assert server.is_running is True

        async with httpx.AsyncClient(trust_env=False) as client:
            resp = await client.get(f"http://127.0.0.1:{unused_tcp_port}/health")
            assert resp.status_code == 200

        await server.stop()
        assert server.is_running is False

    async def test_stop_when_not_running(self, server: AlertServer) -> None:
        """Test stopping an idle server is a no-op."""
        await server.stop()
        assert server.is_running is False
