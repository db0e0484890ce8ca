"""Alert batch orchestration.

For each alert in a batch, in input order:

1. acquire a dashboard snapshot (a failure degrades to a placeholder),
2. compose the notification,
3. deliver it (a failure is recorded and the next alert is processed).

The aggregate BatchResult decides the HTTP status of the webhook response.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from prometheus_client import Counter

from grafana_alert_mailer.notifier.composer import NotificationComposer
from grafana_alert_mailer.notifier.mailer import MailDeliveryError, SmtpMailer
from grafana_alert_mailer.receiver.models import (
    ALERT_STATUS_FIRING,
    ALERT_STATUS_RESOLVED,
    AlertOutcome,
    AlertResult,
    BatchResult,
)
from grafana_alert_mailer.snapshot.client import create_snapshot_client
from grafana_alert_mailer.snapshot.models import SnapshotError

if TYPE_CHECKING:
    from grafana_alert_mailer.config import Settings
    from grafana_alert_mailer.notifier.mailer import Mailer
    from grafana_alert_mailer.receiver.models import Alert, AlertBatch
    from grafana_alert_mailer.snapshot.client import SnapshotSource
    from grafana_alert_mailer.snapshot.models import SnapshotReference

logger = logging.getLogger(__name__)


# Prometheus metrics
ALERTS_RECEIVED = Counter(
    "alert_mailer_alerts_received_total",
    "Total number of alerts received on the webhook",
    ["status"],
)

NOTIFICATIONS_TOTAL = Counter(
    "alert_mailer_notifications_total",
    "Processed alerts by outcome",
    ["outcome"],
)

SNAPSHOT_FAILURES = Counter(
    "alert_mailer_snapshot_failures_total",
    "Snapshot acquisitions that failed",
    ["mode"],
)


# Label values for alerts received; any other status counts as "other"
KNOWN_STATUSES = (ALERT_STATUS_FIRING, ALERT_STATUS_RESOLVED)


def _status_label(status: str) -> str:
    return status if status in KNOWN_STATUSES else "other"


class AlertHandler:
    """Drives snapshot, composition and delivery for every alert of a batch.

    Example:
        ```python
        handler = AlertHandler.from_settings(settings)
        result = await handler.handle_batch(batch)
        print(result.status_code)
        ```
    """

    def __init__(
        self,
        snapshot_source: SnapshotSource,
        mailer: Mailer,
        *,
        dashboard_uid: str,
        panel_id: int | None = None,
        composer: NotificationComposer | None = None,
    ) -> None:
        """Initialize the handler.

        Args:
            snapshot_source: Strategy used to capture the dashboard.
            mailer: Delivery channel for composed notifications.
            dashboard_uid: Dashboard captured for every alert.
            panel_id: Panel rendered in render mode.
            composer: Notification composer (a default one if omitted).
        """
        self.snapshot_source = snapshot_source
        self.mailer = mailer
        self.dashboard_uid = dashboard_uid
        self.panel_id = panel_id
        self.composer = composer or NotificationComposer()

    @classmethod
    def from_settings(cls, settings: Settings, *, dry_run: bool = False) -> AlertHandler:
        """Wire a handler from application settings."""
        return cls(
            create_snapshot_client(settings.grafana),
            SmtpMailer.from_settings(settings.smtp, dry_run=dry_run),
            dashboard_uid=settings.grafana.dashboard_uid,
            panel_id=settings.grafana.panel_id,
        )

    async def _acquire_snapshot(self, index: int) -> SnapshotReference | None:
        try:
            return await self.snapshot_source.acquire(self.dashboard_uid, self.panel_id)
        except SnapshotError as e:
            SNAPSHOT_FAILURES.labels(mode=self.snapshot_source.mode).inc()
            logger.warning("Error creating Grafana snapshot for alert %d: %s", index, e)
            return None

    async def process_alert(self, index: int, alert: Alert) -> AlertResult:
        """Snapshot, compose and deliver a single alert.

        Args:
            index: Position of the alert in its batch.
            alert: The alert to notify.

        Returns:
            AlertResult describing what happened.
        """
        logger.info("Received alert %d: %s (%s)", index, alert.summary, alert.status)
        ALERTS_RECEIVED.labels(status=_status_label(alert.status)).inc()

        reference = await self._acquire_snapshot(index)
        message = self.composer.compose(alert, reference)

        try:
            await self.mailer.deliver(message)
        except MailDeliveryError as e:
            logger.error("Error sending email for alert %d: %s", index, e)
            outcome = AlertOutcome.DELIVERY_FAILED
            error: str | None = str(e)
        else:
            if reference is None:
                outcome = AlertOutcome.DELIVERED_WITHOUT_SNAPSHOT
                error = "snapshot unavailable"
            else:
                outcome = AlertOutcome.DELIVERED
                error = None

        NOTIFICATIONS_TOTAL.labels(outcome=outcome.value).inc()
        return AlertResult(index=index, summary=alert.summary, outcome=outcome, error=error)

    async def handle_batch(self, batch: AlertBatch) -> BatchResult:
        """Process every alert of a batch sequentially.

        Args:
            batch: Decoded alert batch.

        Returns:
            BatchResult with one entry per alert, in input order.
        """
        result = BatchResult()
        for index, alert in enumerate(batch.alerts):
            result.results.append(await self.process_alert(index, alert))

        logger.info(
            "Alert processing completed: %d/%d delivered",
            result.delivered_count,
            len(result.results),
        )
        return result
