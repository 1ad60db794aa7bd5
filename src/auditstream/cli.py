"""Command line entry point serving the audit stream over HTTP."""

import argparse
import logging

import uvicorn
from fastapi import FastAPI

from auditstream.adapters.frameworks.fastapi import create_app
from auditstream.adapters.sources import source_factory
from auditstream.config import SOURCE_KINDS, Settings
from auditstream.core.bridge import Broadcaster
from auditstream.core.supervisor import Supervisor
from auditstream.errors import ConfigurationError
from auditstream.logging_config import setup_logging

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="auditstream",
        description="Stream live OS audit events to HTTP subscribers.",
    )
    parser.add_argument("--host", default=None, help="Bind address (default: 0.0.0.0).")
    parser.add_argument("--port", type=int, default=None, help="Bind port (default: 9357).")
    parser.add_argument(
        "--source",
        choices=SOURCE_KINDS,
        default=None,
        help="Audit source variant (default: auto-detect from the platform).",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Log level (default: INFO).",
    )
    parser.add_argument("--static-dir", default=None, help="UI asset directory (default: ui/dist).")
    return parser.parse_args(argv)


def build_app(settings: Settings) -> FastAPI:
    """Wire broadcaster, supervisor and sources into the FastAPI app."""
    broadcaster = Broadcaster(settings.fanout_capacity)
    supervisor = Supervisor(broadcaster, source_factory(settings), settings.grace_interval)
    return create_app(settings, supervisor, broadcaster)


def main(argv: list[str] | None = None) -> int:
    """Entry point. Returns a process exit code."""
    args = _parse_args(argv)
    try:
        settings = Settings.from_env().replace(
            host=args.host,
            port=args.port,
            source=args.source,
            log_level=args.log_level,
            static_dir=args.static_dir,
        )
    except ConfigurationError as e:
        setup_logging()
        logger.error("Invalid configuration: %s", e)
        return 2

    setup_logging(settings.log_level)
    logger.info("Server running on http://%s:%d (source: %s)", settings.host, settings.port, settings.source)
    uvicorn.run(build_app(settings), host=settings.host, port=settings.port, log_config=None)
    return 0
