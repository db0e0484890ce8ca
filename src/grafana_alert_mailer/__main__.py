"""CLI entry point for Grafana Alert Mailer.

This module provides the main entry point for running the webhook
receiver from the command line.

Usage:
    python -m grafana_alert_mailer [options]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import logging.config
import sys
from typing import NoReturn

from pydantic import ValidationError

from grafana_alert_mailer import __version__
from grafana_alert_mailer.config import Settings, load_settings
from grafana_alert_mailer.receiver.handler import AlertHandler
from grafana_alert_mailer.receiver.server import AlertServer
from grafana_alert_mailer.shutdown import GracefulShutdown

# Application info
APP_NAME = "Grafana Alert Mailer"
APP_VERSION = __version__

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance.
    """
    parser = argparse.ArgumentParser(
        prog="grafana-alert-mailer",
        description="Email Alertmanager alerts enriched with Grafana dashboard snapshots.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m grafana_alert_mailer                   Run the webhook receiver
  python -m grafana_alert_mailer --config-check    Validate config and exit
  python -m grafana_alert_mailer --dry-run         Log notifications instead of mailing them
  python -m grafana_alert_mailer --log-level DEBUG Enable debug logging
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {APP_VERSION}",
    )

    parser.add_argument(
        "--config-check",
        action="store_true",
        help="Validate configuration and exit without starting the server",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override logging level (default: from settings)",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Compose notifications but don't send mail",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Override listening port (default: from settings)",
    )

    return parser


def configure_logging(level: str) -> None:
    """Configure logging for the application.

    Args:
        level: Logging level string (DEBUG, INFO, etc.)
    """
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "detailed": {
                "format": (
                    "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
                ),
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "detailed" if level == "DEBUG" else "standard",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
        "loggers": {
            "httpx": {"level": "WARNING"},
            "httpcore": {"level": "WARNING"},
            "aiosmtplib": {"level": "WARNING"},
            "aiohttp.access": {"level": "WARNING"},
        },
    }
    logging.config.dictConfig(config)


def print_banner() -> None:
    """Print the application startup banner."""
    banner = f"""
+--------------------------------------------------------------+
|   {APP_NAME:^56}   |
|   {"v" + APP_VERSION:^56}   |
+--------------------------------------------------------------+
"""
    print(banner)


def print_config_summary(settings: Settings, dry_run: bool, port: int) -> None:
    """Print a summary of the configuration.

    Args:
        settings: Application settings.
        dry_run: Whether dry-run mode is enabled.
        port: Effective listening port.
    """
    summary = settings.redacted_summary()
    grafana = summary["grafana"]
    smtp = summary["smtp"]

    print("Configuration:")
    if isinstance(grafana, dict):
        print(f"  Grafana: {grafana['url']} (api key {grafana['api_key']})")
        print(f"  Dashboard: {grafana['dashboard_uid']} (panel {grafana['panel_id']})")
        print(f"  Snapshot mode: {grafana['snapshot_mode']}")
    if isinstance(smtp, dict):
        print(f"  SMTP: {smtp['server']} as {smtp['sender']}")
        print(f"  Recipient: {smtp['recipient']}")
    print(f"  Log Level: {summary['log_level']}")
    print(f"  Port: {port}")
    print(f"  Dry Run: {dry_run}")
    print()


def validate_config() -> Settings | None:
    """Validate and load configuration.

    Returns:
        Settings instance if valid, None if invalid.
    """
    try:
        return load_settings()
    except ValidationError as e:
        print("Configuration validation failed:", file=sys.stderr)
        for error in e.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            msg = error["msg"]
            print(f"  {field}: {msg}", file=sys.stderr)
        return None


def run_config_check(settings: Settings) -> int:
    """Print the validated configuration.

    Args:
        settings: Validated settings.

    Returns:
        Exit code (0 for success).
    """
    print("Configuration is valid!")
    print()
    print_config_summary(settings, dry_run=settings.dry_run, port=settings.port)
    print("All checks passed. Ready to run.")
    return EXIT_SUCCESS


async def run_server(
    settings: Settings,
    *,
    port: int,
    dry_run: bool,
    shutdown_timeout: float = 30.0,
) -> int:
    """Serve the webhook until a shutdown signal arrives.

    Args:
        settings: Application settings.
        port: Port to listen on.
        dry_run: Whether to skip sending mail.
        shutdown_timeout: Maximum time to wait for in-flight requests.

    Returns:
        Exit code.
    """
    logger = logging.getLogger(__name__)
    shutdown = GracefulShutdown(timeout=shutdown_timeout)

    try:
        async with shutdown:
            server = AlertServer(AlertHandler.from_settings(settings, dry_run=dry_run))
            shutdown.register_cleanup(server.stop)

            await server.start(port=port)
            logger.info("Webhook receiver running. Press Ctrl+C to stop.")

            await shutdown.wait()
            logger.info("Shutdown signal received, stopping server...")

        return EXIT_SUCCESS
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED
    except Exception as e:
        logger.exception("Server failed: %s", e)
        return EXIT_ERROR


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:]).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    # Fail fast before serving anything
    settings = validate_config()
    if settings is None:
        sys.exit(EXIT_CONFIG_ERROR)

    log_level = args.log_level or settings.log_level
    configure_logging(log_level)

    print_banner()

    if args.config_check:
        sys.exit(run_config_check(settings))

    dry_run = args.dry_run or settings.dry_run
    port = args.port or settings.port

    print_config_summary(settings, dry_run, port)

    exit_code = asyncio.run(run_server(settings, port=port, dry_run=dry_run))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
