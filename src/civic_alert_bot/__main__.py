"""CLI entry point for Civic Alert Bot.

This module provides the main entry point for running the bot's HTTP
endpoint from the command line, plus one-shot maintenance commands.

Usage:
    python -m civic_alert_bot [options]
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import logging.config
import signal
import sys
from typing import NoReturn

from pydantic import ValidationError

from civic_alert_bot import __version__
from civic_alert_bot.alerter.broadcaster import summarize
from civic_alert_bot.config import Settings, clear_settings_cache, get_settings
from civic_alert_bot.server import AlertBotServer
from civic_alert_bot.storage.database import create_engine, create_session_factory, init_models

# Application info
APP_NAME = "CamerPulse Civic Alert Bot"
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
        prog="civic-alert-bot",
        description="Broadcast civic intelligence alerts to Telegram and WhatsApp.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m civic_alert_bot                    Serve the bot endpoint
  python -m civic_alert_bot --config-check     Validate config and exit
  python -m civic_alert_bot --send-digest      Send today's digest once and exit
  python -m civic_alert_bot --log-level DEBUG  Enable debug logging
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
        help="Validate configuration and exit without serving",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override logging level (default: from settings)",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Override HTTP port (default: from settings)",
    )

    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create missing tables and exit (local databases only)",
    )

    parser.add_argument(
        "--send-digest",
        action="store_true",
        help="Send the daily digest with the stored bot configuration and exit",
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
        # Quieter logging for noisy libraries
        "loggers": {
            "httpx": {"level": "WARNING"},
            "httpcore": {"level": "WARNING"},
            "aiohttp.access": {"level": "WARNING"},
            "sqlalchemy.engine": {"level": "WARNING"},
        },
    }
    logging.config.dictConfig(config)


def print_banner() -> None:
    """Print the application startup banner."""
    banner = f"""
╔══════════════════════════════════════════════════════════════╗
║                                                              ║
║   {APP_NAME:^56}   ║
║   {"v" + APP_VERSION:^56}   ║
║                                                              ║
╚══════════════════════════════════════════════════════════════╝
"""
    print(banner)


def print_config_summary(settings: Settings, port: int) -> None:
    """Print a summary of the configuration.

    Args:
        settings: Application settings.
        port: Effective HTTP port.
    """
    summary = settings.redacted_summary()
    print("Configuration:")
    print(f"  Database: {summary['database_url']}")
    print(f"  Dashboard: {summary['dashboard_url']}")
    print(f"  Log Level: {summary['log_level']}")
    print(f"  HTTP Port: {port}")
    print(f"  Telegram: {'configured' if settings.telegram.enabled else 'not configured'}")
    print(f"  WhatsApp: {'configured' if settings.whatsapp.enabled else 'not configured'}")
    print()


def validate_config() -> Settings | None:
    """Validate and load configuration.

    Returns:
        Settings instance if valid, None if invalid.
    """
    try:
        clear_settings_cache()
        return get_settings()
    except ValidationError as e:
        print("Configuration validation failed:", file=sys.stderr)
        for error in e.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            msg = error["msg"]
            print(f"  {field}: {msg}", file=sys.stderr)
        return None


def run_config_check(settings: Settings) -> int:
    """Run configuration check and exit.

    Args:
        settings: Validated settings.

    Returns:
        Exit code (0 for success).
    """
    print("Configuration is valid!")
    print()
    print_config_summary(settings, settings.http_port)

    print("Checking channel credentials...")
    if settings.telegram.enabled:
        print("  Telegram: configured")
    else:
        print("  Telegram: not configured (status checks will report it offline)")

    if settings.whatsapp.enabled:
        print("  WhatsApp: configured")
    else:
        print("  WhatsApp: not configured (WhatsApp sends will fail)")

    print()
    print("All checks passed. Ready to run.")
    return EXIT_SUCCESS


async def run_init_db(settings: Settings) -> int:
    """Create missing tables.

    Returns:
        Exit code.
    """
    logger = logging.getLogger(__name__)
    engine = create_engine(settings.database.url)
    try:
        await init_models(engine)
        return EXIT_SUCCESS
    except Exception as e:
        logger.exception("Schema initialisation failed: %s", e)
        return EXIT_ERROR
    finally:
        await engine.dispose()


async def run_send_digest(settings: Settings) -> int:
    """Send one daily digest with the stored bot configuration.

    Returns:
        Exit code.
    """
    logger = logging.getLogger(__name__)
    engine = create_engine(settings.database.url)
    try:
        server = AlertBotServer.from_settings(settings, create_session_factory(engine))
        config = await server.load_bot_config()
        results = await server.broadcaster.send_digest(config)
        print(json.dumps(summarize(results), indent=2))
        return EXIT_SUCCESS
    except Exception as e:
        logger.exception("Digest failed: %s", e)
        return EXIT_ERROR
    finally:
        await engine.dispose()


async def run_server(settings: Settings, port: int) -> int:
    """Serve the bot endpoint until SIGINT or SIGTERM.

    Args:
        settings: Application settings.
        port: HTTP port to listen on.

    Returns:
        Exit code.
    """
    logger = logging.getLogger(__name__)
    engine = create_engine(settings.database.url)
    server = AlertBotServer.from_settings(settings, create_session_factory(engine))

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    try:
        await server.start_http_server(port)
        logger.info("Alert bot running. Press Ctrl+C to stop.")
        await stop.wait()
        logger.info("Shutdown signal received, stopping server...")
        return EXIT_SUCCESS
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED
    except Exception as e:
        logger.exception("Server failed: %s", e)
        return EXIT_ERROR
    finally:
        await server.stop_http_server()
        await engine.dispose()


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:]).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    settings = validate_config()
    if settings is None:
        sys.exit(EXIT_CONFIG_ERROR)

    log_level = args.log_level or settings.log_level
    configure_logging(log_level)

    if args.config_check:
        print_banner()
        sys.exit(run_config_check(settings))

    if args.init_db:
        sys.exit(asyncio.run(run_init_db(settings)))

    if args.send_digest:
        sys.exit(asyncio.run(run_send_digest(settings)))

    port = args.port or settings.http_port
    print_banner()
    print_config_summary(settings, port)

    sys.exit(asyncio.run(run_server(settings, port)))


if __name__ == "__main__":
    main()
