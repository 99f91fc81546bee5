from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List

from ..log import LogEntry, format_log_entry


@dataclass(frozen=True)
class SummaryPrompt:
    system_prompt: str
    messages: List[Dict[str, str]]


_SYSTEM_PROMPT = (
    "You are a concise summarizer. Given a log of group chat messages, produce a brief summary noting: "
    "key participants, topics discussed, any media or files exchanged, and approximate timeline. "
    "Keep it under 200 words. Output only the summary, no preamble."
)


def format_log_entries(entries: List[LogEntry]) -> str:
    return "\n".join(format_log_entry(entry) for entry in entries)


def build_summarization_prompt(entries: List[LogEntry]) -> SummaryPrompt:
    messages = [{"role": "user", "content": format_log_entries(entries)}]
    return SummaryPrompt(system_prompt=_SYSTEM_PROMPT, messages=messages)


__all__ = ["SummaryPrompt", "build_summarization_prompt", "format_log_entries"]
