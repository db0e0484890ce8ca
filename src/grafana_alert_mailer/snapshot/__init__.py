"""Snapshot layer - Grafana dashboard capture."""

from grafana_alert_mailer.snapshot.client import (
    LinkSnapshotClient,
    RenderSnapshotClient,
    SnapshotSource,
    create_snapshot_client,
)
from grafana_alert_mailer.snapshot.models import (
    SNAPSHOT_PLACEHOLDER,
    SnapshotError,
    SnapshotImage,
    SnapshotLink,
    SnapshotReference,
)

__all__ = [
    "SNAPSHOT_PLACEHOLDER",
    "LinkSnapshotClient",
    "RenderSnapshotClient",
    "SnapshotError",
    "SnapshotImage",
    "SnapshotLink",
    "SnapshotReference",
    "SnapshotSource",
    "create_snapshot_client",
]
