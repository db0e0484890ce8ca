"""Data models for the notifier module."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from grafana_alert_mailer.snapshot.models import SnapshotImage


@dataclass(frozen=True)
class OutboundMessage:
    """A notification ready for delivery.

    Attributes:
        subject: Mail subject line.
        html_body: HTML body of the mail.
        link: Snapshot URL embedded in the body, if a link was acquired.
        attachment: Rendered snapshot attached to the mail, if an image was acquired.
    """

    subject: str
    html_body: str
    link: str | None = None
    attachment: SnapshotImage | None = None
