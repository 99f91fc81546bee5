"""Markdown cleanup for chat platforms that render only a tiny subset of it."""

import re

_MARKERS = re.compile(r"[*_~`]")
_ESCAPED_PUNCTUATION = re.compile(r"\\([.!(){}\[\]])")


def clean_markdown(text: str) -> str:
    """Strip formatting markers that would confuse the platform's markdown parser."""
    cleaned = _MARKERS.sub("", text or "")
    return _ESCAPED_PUNCTUATION.sub(r"\1", cleaned)


__all__ = ["clean_markdown"]
