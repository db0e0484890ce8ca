"""Notification composer.

This module turns an Alert and the snapshot acquired for it into an
OutboundMessage. Composition never fails: missing annotations render as
empty strings and a missing snapshot renders as a placeholder line.
"""

from __future__ import annotations

from html import escape
from typing import TYPE_CHECKING

from grafana_alert_mailer.notifier.models import OutboundMessage
from grafana_alert_mailer.snapshot.models import (
    SNAPSHOT_PLACEHOLDER,
    SnapshotImage,
    SnapshotLink,
)

if TYPE_CHECKING:
    from grafana_alert_mailer.receiver.models import Alert
    from grafana_alert_mailer.snapshot.models import SnapshotReference

DEFAULT_SUBJECT_PREFIX = "Monitor Alert: "

SNAPSHOT_LABEL = "Grafana Snapshot"
SNAPSHOT_LINK_TEXT = "View Snapshot"


def _single_line(text: str) -> str:
    # Mail headers cannot carry CR/LF
    return " ".join(text.split())


class NotificationComposer:
    """Builds the subject and HTML body of an alert notification."""

    def __init__(self, subject_prefix: str = DEFAULT_SUBJECT_PREFIX) -> None:
        """Initialize the composer.

        Args:
            subject_prefix: Fixed text placed before the alert summary.
        """
        self.subject_prefix = subject_prefix

    def compose(
        self, alert: Alert, reference: SnapshotReference | None
    ) -> OutboundMessage:
        """Compose the notification for one alert.

        Args:
            alert: The alert being notified.
            reference: Snapshot acquired for the alert, or None when
                acquisition failed.

        Returns:
            OutboundMessage carrying the link or the image attachment.
        """
        summary = alert.summary
        body = f"<h1>{escape(summary)}</h1><p>{escape(alert.description)}</p>"

        link: str | None = None
        attachment: SnapshotImage | None = None

        if isinstance(reference, SnapshotLink):
            link = reference.url
            body += (
                f'<br><br>{SNAPSHOT_LABEL}: '
                f'<a href="{escape(link, quote=True)}">{SNAPSHOT_LINK_TEXT}</a>'
            )
        elif isinstance(reference, SnapshotImage):
            attachment = reference
            body += f"<br><br>{SNAPSHOT_LABEL}: attached as {escape(reference.filename)}"
        else:
            body += f"<br><br>{SNAPSHOT_LABEL}: {SNAPSHOT_PLACEHOLDER}"

        return OutboundMessage(
            subject=f"{self.subject_prefix}{_single_line(summary)}",
            html_body=body,
            link=link,
            attachment=attachment,
        )
