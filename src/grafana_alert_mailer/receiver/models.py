"""Data models for the receiver module."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

ALERT_STATUS_FIRING = "firing"
ALERT_STATUS_RESOLVED = "resolved"


class PayloadError(ValueError):
    """Raised when an inbound webhook body cannot be decoded."""


def _decode_str_map(value: Any, name: str, index: int) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise PayloadError(f"alerts[{index}].{name} must be an object")
    for key, item in value.items():
        if not isinstance(item, str):
            raise PayloadError(f"alerts[{index}].{name}.{key} must be a string")
    return dict(value)


@dataclass(frozen=True)
class Alert:
    """A single alert as posted by Alertmanager.

    Only the fields used to build the notification are kept; any other
    Alertmanager fields are ignored on decode. Labels and annotations are
    copied into read-only mappings.
    """

    status: str = ""
    labels: Mapping[str, str] = field(default_factory=dict)
    annotations: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "labels", MappingProxyType(dict(self.labels)))
        object.__setattr__(self, "annotations", MappingProxyType(dict(self.annotations)))

    def __hash__(self) -> int:
        return hash(
            (self.status, frozenset(self.labels.items()), frozenset(self.annotations.items()))
        )

    @property
    def summary(self) -> str:
        """The ``summary`` annotation, or an empty string."""
        return self.annotations.get("summary", "")

    @property
    def description(self) -> str:
        """The ``description`` annotation, or an empty string."""
        return self.annotations.get("description", "")

    @property
    def is_firing(self) -> bool:
        """Return True if the alert is firing."""
        return self.status == ALERT_STATUS_FIRING

    @classmethod
    def from_dict(cls, data: Any, index: int = 0) -> Alert:
        """Create an Alert from a decoded JSON object.

        Raises:
            PayloadError: If the object or its fields have the wrong shape.
        """
        if not isinstance(data, dict):
            raise PayloadError(f"alerts[{index}] must be an object")

        status = data.get("status", "")
        if status is None:
            status = ""
        if not isinstance(status, str):
            raise PayloadError(f"alerts[{index}].status must be a string")

        return cls(
            status=status,
            labels=_decode_str_map(data.get("labels"), "labels", index),
            annotations=_decode_str_map(data.get("annotations"), "annotations", index),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the Alertmanager wire shape."""
        return {
            "status": self.status,
            "labels": dict(self.labels),
            "annotations": dict(self.annotations),
        }


@dataclass(frozen=True)
class AlertBatch:
    """Ordered alerts received in one webhook request."""

    alerts: tuple[Alert, ...] = ()

    def __len__(self) -> int:
        return len(self.alerts)

    @classmethod
    def from_dict(cls, data: Any) -> AlertBatch:
        """Create an AlertBatch from a decoded webhook payload.

        Raises:
            PayloadError: If ``alerts`` is missing or malformed.
        """
        if not isinstance(data, dict):
            raise PayloadError("payload must be a JSON object")
        if "alerts" not in data:
            raise PayloadError("payload has no 'alerts' field")

        alerts = data["alerts"]
        if not isinstance(alerts, list):
            raise PayloadError("'alerts' must be a list")

        return cls(alerts=tuple(Alert.from_dict(a, i) for i, a in enumerate(alerts)))

    @classmethod
    def from_json(cls, body: bytes | str) -> AlertBatch:
        """Decode a raw request body.

        Raises:
            PayloadError: If the body is not valid JSON or not a valid batch.
        """
        try:
            data = json.loads(body)
        except (ValueError, TypeError) as e:
            raise PayloadError(f"invalid JSON: {e}") from e
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the Alertmanager wire shape."""
        return {"alerts": [alert.to_dict() for alert in self.alerts]}


class AlertOutcome(Enum):
    """Result of processing one alert."""

    DELIVERED = "delivered"
    DELIVERED_WITHOUT_SNAPSHOT = "delivered_without_snapshot"
    DELIVERY_FAILED = "delivery_failed"


@dataclass(frozen=True)
class AlertResult:
    """Outcome for a single alert within a batch."""

    index: int
    summary: str
    outcome: AlertOutcome
    error: str | None = None

    @property
    def delivered(self) -> bool:
        """Return True if a notification went out for this alert."""
        return self.outcome != AlertOutcome.DELIVERY_FAILED


@dataclass
class BatchResult:
    """Per-alert outcomes of one webhook request, in input order."""

    results: list[AlertResult] = field(default_factory=list)

    @property
    def delivered_count(self) -> int:
        """Number of alerts that produced a notification."""
        return sum(1 for r in self.results if r.delivered)

    @property
    def failed_count(self) -> int:
        """Number of alerts whose notification could not be delivered."""
        return len(self.results) - self.delivered_count

    @property
    def all_delivered(self) -> bool:
        """Return True if no delivery failed (also for an empty batch)."""
        return self.failed_count == 0

    @property
    def status_code(self) -> int:
        """HTTP status for the webhook response.

        200 when everything was delivered, 500 when nothing was, and
        207 for a partial result.
        """
        if self.all_delivered:
            return 200
        if self.delivered_count == 0:
            return 500
        return 207

    def to_dict(self) -> dict[str, Any]:
        """Summary suitable for a JSON response body."""
        return {
            "delivered": self.delivered_count,
            "failed": self.failed_count,
            "alerts": [
                {
                    "index": r.index,
                    "summary": r.summary,
                    "outcome": r.outcome.value,
                    "error": r.error,
                }
                for r in self.results
            ],
        }
