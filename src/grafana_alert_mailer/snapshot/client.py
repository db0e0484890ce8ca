"""Grafana clients that turn a dashboard into a shareable snapshot.

Two strategies are available behind the same ``acquire`` call:

- ``LinkSnapshotClient`` fetches the dashboard model and publishes it as an
  expiring snapshot, returning the snapshot URL.
- ``RenderSnapshotClient`` asks the image renderer for a single panel and
  returns the PNG bytes.

Every request carries the bearer token and a bounded timeout. A new
``httpx.AsyncClient`` is opened per acquisition.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from grafana_alert_mailer.config import SNAPSHOT_MODE_LINK, SNAPSHOT_MODE_RENDER
from grafana_alert_mailer.snapshot.models import (
    SnapshotError,
    SnapshotImage,
    SnapshotLink,
    SnapshotReference,
)

if TYPE_CHECKING:
    from grafana_alert_mailer.config import GrafanaSettings

logger = logging.getLogger(__name__)

# Grafana HTTP API paths
DASHBOARD_PATH = "/api/dashboards/uid/{uid}"
SNAPSHOTS_PATH = "/api/snapshots"
RENDER_PATH = "/render/d-solo/{uid}"

SNAPSHOT_EXPIRES_SECONDS = 3600  # 1 hour
RENDER_WIDTH = 1000
RENDER_HEIGHT = 500
RENDER_ORG_ID = 1
DEFAULT_TIMEOUT = 10.0

# Response bodies quoted in errors are cut to this length
MAX_ERROR_DETAIL = 500


class SnapshotSource(Protocol):
    """Protocol for snapshot acquisition strategies."""

    mode: str

    async def acquire(
        self, dashboard_uid: str, panel_id: int | None = None
    ) -> SnapshotReference:
        """Return a snapshot reference or raise SnapshotError."""
        ...


def _error_detail(response: httpx.Response) -> str:
    text = response.text
    if len(text) > MAX_ERROR_DETAIL:
        return text[:MAX_ERROR_DETAIL] + "..."
    return text


class GrafanaClient:
    """Base class holding the connection details shared by both strategies."""

    mode = ""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Grafana base URL, without trailing slash.
            api_key: Bearer token for the Grafana HTTP API.
            timeout: Timeout in seconds applied to each request.
            transport: Optional httpx transport (used for testing).
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._api_key = api_key
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers={"Authorization": f"Bearer {self._api_key}"},
            timeout=self.timeout,
            transport=self._transport,
        )


class LinkSnapshotClient(GrafanaClient):
    """Creates an expiring Grafana snapshot and returns its URL."""

    mode = SNAPSHOT_MODE_LINK

    async def _fetch_dashboard(
        self, client: httpx.AsyncClient, dashboard_uid: str
    ) -> dict[str, Any]:
        url = self.base_url + DASHBOARD_PATH.format(uid=dashboard_uid)
        try:
            response = await client.get(url)
        except httpx.HTTPError as e:
            raise SnapshotError("error sending dashboard request", detail=str(e)) from e

        if response.status_code != 200:
            raise SnapshotError(
                "unexpected dashboard response",
                status_code=response.status_code,
                detail=_error_detail(response),
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise SnapshotError("error decoding dashboard response", detail=str(e)) from e

        dashboard = payload.get("dashboard") if isinstance(payload, dict) else None
        if not isinstance(dashboard, dict):
            raise SnapshotError("dashboard data not found in response")
        return dashboard

    async def _create_snapshot(
        self, client: httpx.AsyncClient, dashboard: dict[str, Any]
    ) -> str:
        url = self.base_url + SNAPSHOTS_PATH
        body = {"dashboard": dashboard, "expires": SNAPSHOT_EXPIRES_SECONDS}
        try:
            response = await client.post(url, json=body)
        except httpx.HTTPError as e:
            raise SnapshotError("error sending snapshot request", detail=str(e)) from e

        if response.status_code != 200:
            raise SnapshotError(
                "unexpected snapshot response",
                status_code=response.status_code,
                detail=_error_detail(response),
            )

        try:
            result = response.json()
        except ValueError as e:
            raise SnapshotError("error decoding snapshot response", detail=str(e)) from e

        snapshot_url = result.get("url") if isinstance(result, dict) else None
        if not isinstance(snapshot_url, str) or not snapshot_url:
            raise SnapshotError("snapshot URL not found in response")
        return snapshot_url

    async def acquire(
        self, dashboard_uid: str, panel_id: int | None = None
    ) -> SnapshotLink:
        """Publish the dashboard as a snapshot and return its link.

        Args:
            dashboard_uid: UID of the dashboard to snapshot.
            panel_id: Ignored; a snapshot always covers the whole dashboard.

        Returns:
            SnapshotLink pointing at the hosted snapshot.

        Raises:
            SnapshotError: If either Grafana call fails.
        """
        async with self._client() as client:
            dashboard = await self._fetch_dashboard(client, dashboard_uid)
            snapshot_url = await self._create_snapshot(client, dashboard)

        logger.debug("Created snapshot for dashboard %s: %s", dashboard_uid, snapshot_url)
        return SnapshotLink(url=snapshot_url)


class RenderSnapshotClient(GrafanaClient):
    """Renders a single dashboard panel to an image."""

    mode = SNAPSHOT_MODE_RENDER

    async def acquire(
        self, dashboard_uid: str, panel_id: int | None = None
    ) -> SnapshotImage:
        """Render a dashboard panel.

        Args:
            dashboard_uid: UID of the dashboard holding the panel.
            panel_id: Panel to render.

        Returns:
            SnapshotImage with the rendered bytes.

        Raises:
            SnapshotError: If the panel is missing, the request fails, or the
                response is not an image.
        """
        if panel_id is None:
            raise SnapshotError("panel id is required to render a snapshot")

        url = self.base_url + RENDER_PATH.format(uid=dashboard_uid)
        params = {
            "orgId": RENDER_ORG_ID,
            "panelId": panel_id,
            "width": RENDER_WIDTH,
            "height": RENDER_HEIGHT,
        }

        async with self._client() as client:
            try:
                response = await client.get(url, params=params)
            except httpx.HTTPError as e:
                raise SnapshotError("error sending render request", detail=str(e)) from e

        if response.status_code != 200:
            raise SnapshotError(
                "unexpected render response",
                status_code=response.status_code,
                detail=_error_detail(response),
            )

        content_type = response.headers.get("Content-Type", "").split(";", 1)[0].strip()
        if not content_type.startswith("image/"):
            raise SnapshotError(
                "render response is not an image",
                detail=content_type or "no content type",
            )
        if not response.content:
            raise SnapshotError("render response is empty")

        logger.debug(
            "Rendered panel %s of dashboard %s (%d bytes)",
            panel_id,
            dashboard_uid,
            len(response.content),
        )
        return SnapshotImage(content=response.content, content_type=content_type)


def create_snapshot_client(
    settings: GrafanaSettings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> LinkSnapshotClient | RenderSnapshotClient:
    """Build the snapshot client selected by ``settings.snapshot_mode``."""
    client_class: type[LinkSnapshotClient] | type[RenderSnapshotClient]
    if settings.snapshot_mode == SNAPSHOT_MODE_RENDER:
        client_class = RenderSnapshotClient
    else:
        client_class = LinkSnapshotClient

    return client_class(
        settings.url,
        settings.api_key.get_secret_value(),
        timeout=settings.timeout_seconds,
        transport=transport,
    )
