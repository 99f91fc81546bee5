#!/usr/bin/env python3
"""CLI entrypoint for running the Skye webhook server with Uvicorn."""

import argparse
import logging
from typing import List, Optional

import uvicorn

from .config import Settings, get_settings
from .logging_config import configure_logging


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Skye Telegram bot server")
    parser.add_argument("--host", default=settings.server_host, help=f"Host to bind (default: {settings.server_host})")
    parser.add_argument(
        "--port", type=int, default=settings.server_port, help=f"Port to bind (default: {settings.server_port})"
    )
    parser.add_argument(
        "--log-level",
        default=settings.log_level.lower(),
        choices=["critical", "error", "warning", "info", "debug"],
        type=str.lower,
        help="Log level for Skye and uvicorn (default: SKYE_LOG_LEVEL or info)",
    )
    parser.add_argument("--reload", action="store_true", help="Reload on code changes (development only)")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser(get_settings()).parse_args(argv)
    configure_logging(args.log_level)

    # Telegram retries deliveries constantly; access lines add nothing
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("watchfiles.main").setLevel(logging.WARNING)

    uvicorn.run(
        "skye.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level,
        access_log=False,
    )


if __name__ == "__main__":  # pragma: no cover - CLI invocation guard
    main()
