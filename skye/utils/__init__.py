from .markdown import clean_markdown
from .responses import error_response
from .timezones import (
    UTC,
    format_unix_timestamp,
    now_in_timezone,
    resolve_timezone,
)

__all__ = [
    "clean_markdown",
    "error_response",
    "UTC",
    "format_unix_timestamp",
    "now_in_timezone",
    "resolve_timezone",
]
