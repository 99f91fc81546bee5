from __future__ import annotations

import logging
from typing import Optional

logger = logging.getLogger("skye.server")

# Third-party loggers that echo every HTTP call, bot token included in the URL
_NOISY_LOGGERS = ("httpx", "httpcore")


def resolve_level(name: Optional[str]) -> int:
    """Map a level name such as ``"debug"`` to its numeric value; unknown names mean INFO."""
    level = getattr(logging, (name or "").strip().upper(), None)
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level: Optional[str] = None) -> None:
    """Set the service log level and install a root handler if none exists yet.

    *level* defaults to ``SKYE_LOG_LEVEL``. The service logger's level is
    always applied, so a host that already configured handlers (uvicorn, pytest)
    still gets the requested verbosity.
    """
    if level is None:
        from .config import get_settings

        level = get_settings().log_level
    resolved = resolve_level(level)
    logger.setLevel(resolved)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if logger.handlers or logging.getLogger().handlers:
        return

    logging.basicConfig(
        level=resolved,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


__all__ = ["configure_logging", "logger", "resolve_level"]
