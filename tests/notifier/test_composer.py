"""Tests for the notification composer."""

import pytest

from grafana_alert_mailer.notifier.composer import DEFAULT_SUBJECT_PREFIX, NotificationComposer
from grafana_alert_mailer.notifier.models import OutboundMessage
from grafana_alert_mailer.receiver.models import Alert
from grafana_alert_mailer.snapshot.models import (
    SNAPSHOT_PLACEHOLDER,
    SnapshotImage,
    SnapshotLink,
)

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def composer() -> NotificationComposer:
    """Create a composer with the default prefix."""
    return NotificationComposer()


@pytest.fixture
def cpu_alert() -> Alert:
    """Create a firing CPU alert."""
    return Alert(
        status="firing",
        labels={"alertname": "HighCPULoad", "instance": "node-exporter:9100"},
        annotations={"summary": "CPU high", "description": "92%"},
    )


# ============================================================================
# Composition Tests
# ============================================================================


class TestSubject:
    """Tests for subject lines."""

    def test_subject_has_prefix_and_summary(
        self, composer: NotificationComposer, cpu_alert: Alert
    ) -> None:
        """Test the subject is the fixed prefix plus the summary."""
        message = composer.compose(cpu_alert, SnapshotLink(url="https://g/snap/abc"))

        assert message.subject == "Monitor Alert: CPU high"
        assert "CPU high" in message.subject

    def test_custom_prefix(self, cpu_alert: Alert) -> None:
        """Test a custom subject prefix."""
        message = NotificationComposer(subject_prefix="[prod] ").compose(cpu_alert, None)
        assert message.subject == "[prod] CPU high"

    def test_missing_annotations_degrade_to_empty(self, composer: NotificationComposer) -> None:
        """Test an alert without annotations still composes."""
        message = composer.compose(Alert(status="firing"), None)

        assert message.subject == DEFAULT_SUBJECT_PREFIX
        assert message.html_body.startswith("<h1></h1><p></p>")


class TestBody:
    """Tests for HTML bodies."""

    def test_link_reference(self, composer: NotificationComposer, cpu_alert: Alert) -> None:
        """Test a snapshot URL is embedded as the hyperlink target."""
        message = composer.compose(cpu_alert, SnapshotLink(url="https://g/snap/abc"))

        assert isinstance(message, OutboundMessage)
        assert "<h1>CPU high</h1><p>92%</p>" in message.html_body
        assert 'href="https://g/snap/abc"' in message.html_body
        assert "View Snapshot" in message.html_body
        assert message.link == "https://g/snap/abc"
        assert message.attachment is None

    def test_image_reference(self, composer: NotificationComposer, cpu_alert: Alert) -> None:
        """Test a rendered image becomes the attachment."""
        image = SnapshotImage(content=b"\x89PNG", content_type="image/png")

        message = composer.compose(cpu_alert, image)

        assert message.attachment is image
        assert message.link is None
        assert "snapshot.png" in message.html_body
        assert "href=" not in message.html_body

    def test_failed_acquisition_uses_placeholder(
        self, composer: NotificationComposer, cpu_alert: Alert
    ) -> None:
        """Test a missing snapshot renders the placeholder text."""
        message = composer.compose(cpu_alert, None)

        assert SNAPSHOT_PLACEHOLDER in message.html_body
        assert "failed to get snapshot url" in message.html_body
        assert message.link is None
        assert message.attachment is None

    def test_annotations_are_escaped(self, composer: NotificationComposer) -> None:
        """Test annotation text cannot inject markup."""
        alert = Alert(
            annotations={"summary": "<script>x</script>", "description": "a & b"},
        )

        message = composer.compose(alert, None)

        assert "<script>" not in message.html_body
        assert "&lt;script&gt;" in message.html_body
        assert "a &amp; b" in message.html_body

    def test_url_attribute_is_escaped(self, composer: NotificationComposer) -> None:
        """Test quotes in a snapshot URL cannot break the attribute."""
        message = composer.compose(Alert(), SnapshotLink(url='https://g/s?a=1&b="2"'))

        assert 'href="https://g/s?a=1&amp;b=&quot;2&quot;"' in message.html_body

    def test_multiline_summary_subject_is_single_line(
        self, composer: NotificationComposer
    ) -> None:
        """Test line breaks in the summary are folded out of the subject."""
        alert = Alert(annotations={"summary": "CPU high\non node-1\r\n", "description": "92%"})

        message = composer.compose(alert, None)

        assert message.subject == "Monitor Alert: CPU high on node-1"
        assert "\n" not in message.subject
        assert "\r" not in message.subject
        assert "<h1>CPU high\non node-1\r\n</h1>" in message.html_body
