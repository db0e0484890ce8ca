"""Notification layer - message composition and mail delivery."""

from grafana_alert_mailer.notifier.composer import NotificationComposer
from grafana_alert_mailer.notifier.mailer import Mailer, MailDeliveryError, SmtpMailer
from grafana_alert_mailer.notifier.models import OutboundMessage

__all__ = [
    "MailDeliveryError",
    "Mailer",
    "NotificationComposer",
    "OutboundMessage",
    "SmtpMailer",
]
