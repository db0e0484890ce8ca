"""Receiver layer - webhook ingestion and per-alert orchestration."""

from grafana_alert_mailer.receiver.handler import AlertHandler
from grafana_alert_mailer.receiver.models import (
    Alert,
    AlertBatch,
    AlertOutcome,
    AlertResult,
    BatchResult,
    PayloadError,
)
from grafana_alert_mailer.receiver.server import AlertServer

__all__ = [
    "Alert",
    "AlertBatch",
    "AlertHandler",
    "AlertOutcome",
    "AlertResult",
    "AlertServer",
    "BatchResult",
    "PayloadError",
]
