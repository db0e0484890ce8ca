"""Grafana Alert Mailer - Alertmanager webhook to email bridge with dashboard snapshots."""

__version__ = "0.1.0"
