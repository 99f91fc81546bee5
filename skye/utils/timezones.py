"""Shared helpers for working with the configured display timezone."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..config import get_settings
from ..logging_config import logger

UTC = timezone.utc


def resolve_timezone(name: Optional[str] = None, default: str = "UTC") -> ZoneInfo:
    """Resolve *name* (or the configured timezone) to a ZoneInfo, falling back to default."""

    tz_name = name or get_settings().timezone or default
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(
            "unknown timezone; defaulting to %s",
            default,
            extra={"timezone": tz_name},
        )
    return ZoneInfo(default)


def now_in_timezone(fmt: Optional[str] = None, *, name: Optional[str] = None) -> datetime | str:
    """Return the current time in the configured timezone.

    When *fmt* is provided, the result is formatted using ``datetime.strftime``;
    otherwise the aware ``datetime`` object is returned.
    """

    current = datetime.now(resolve_timezone(name))
    if fmt is None:
        return current
    return current.strftime(fmt)


def format_unix_timestamp(value: Optional[int], fmt: str = "%Y-%m-%d %H:%M", *, name: Optional[str] = None) -> str:
    """Render a platform unix timestamp in the configured timezone, or now when missing."""

    if not value:
        return now_in_timezone(fmt, name=name)
    return datetime.fromtimestamp(value, tz=UTC).astimezone(resolve_timezone(name)).strftime(fmt)


__all__ = [
    "UTC",
    "format_unix_timestamp",
    "now_in_timezone",
    "resolve_timezone",
]
