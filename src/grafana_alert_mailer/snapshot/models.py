"""Data models for the snapshot module."""

from __future__ import annotations

from dataclasses import dataclass

# Substituted for the snapshot link when acquisition fails
SNAPSHOT_PLACEHOLDER = "failed to get snapshot url"

_IMAGE_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/gif": "gif",
    "image/webp": "webp",
}


@dataclass(frozen=True)
class SnapshotLink:
    """Shareable URL of a hosted, expiring Grafana snapshot."""

    url: str


@dataclass(frozen=True)
class SnapshotImage:
    """Rendered dashboard panel image.

    Attributes:
        content: Raw image bytes as returned by the render endpoint.
        content_type: MIME type of the image, e.g. ``image/png``.
    """

    content: bytes
    content_type: str = "image/png"

    @property
    def maintype(self) -> str:
        """Major MIME type (always ``image``)."""
        return self.content_type.split("/", 1)[0]

    @property
    def subtype(self) -> str:
        """Minor MIME type, e.g. ``png``."""
        return self.content_type.split("/", 1)[-1]

    @property
    def filename(self) -> str:
        """Attachment filename derived from the content type."""
        return f"snapshot.{_IMAGE_EXTENSIONS.get(self.content_type, self.subtype)}"


SnapshotReference = SnapshotLink | SnapshotImage


class SnapshotError(Exception):
    """Raised when a dashboard snapshot cannot be obtained.

    Attributes:
        status_code: HTTP status returned by Grafana, if a response was received.
        detail: Response body or underlying error text.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        detail: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail

    def __str__(self) -> str:
        message = super().__str__()
        if self.status_code is not None:
            message = f"{message} (status {self.status_code})"
        if self.detail:
            message = f"{message}: {self.detail}"
        return message
