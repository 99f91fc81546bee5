from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Deque, Dict, List, Optional

from ...logging_config import logger

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from .summarization.state import SummaryStore


class LogEntryType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    OTHER = "other"


@dataclass(frozen=True)
class LogEntry:
    """One chat message as seen by the summarizer."""

    sender: str
    timestamp: str
    type: LogEntryType
    content: str
    reply_to: Optional[str] = None


@dataclass(frozen=True)
class ChatContext:
    chat_title: str
    summary: str
    recent_log: str


def format_log_entry(entry: LogEntry) -> str:
    reply = f" (replying to {entry.reply_to})" if entry.reply_to else ""
    type_tag = f"[{entry.type.value}] " if entry.type is not LogEntryType.TEXT else ""
    return f"[{entry.timestamp}] {entry.sender}{reply}: {type_tag}{entry.content}"


class ChatLog:
    """Ring buffer of recent messages per chat plus the persisted rolling summary.

    The buffer is capped at ``max_buffer`` entries. The last ``recent_count``
    entries form the recent window that is sent verbatim and never summarized
    away; everything older feeds the summarizer.
    """

    def __init__(
        self,
        summary_store: "SummaryStore",
        *,
        max_buffer: int = 50,
        recent_count: int = 20,
        summarize_interval: int = 10,
    ) -> None:
        self._summaries = summary_store
        self._max_buffer = max_buffer
        self._recent_count = recent_count
        self._summarize_interval = summarize_interval
        self._buffers: Dict[int, Deque[LogEntry]] = {}
        self._counters: Dict[int, int] = {}
        self._titles: Dict[int, str] = {}

    @property
    def recent_count(self) -> int:
        return self._recent_count

    def log_message(self, chat_id: int, entry: LogEntry, chat_title: Optional[str] = None) -> bool:
        """Append *entry*; returns True once the chat is due for summarization."""
        if chat_title:
            self._titles[chat_id] = chat_title

        buffer = self._buffers.get(chat_id)
        if buffer is None:
            buffer = self._buffers[chat_id] = deque(maxlen=self._max_buffer)
        buffer.append(entry)

        count = self._counters.get(chat_id, 0) + 1
        self._counters[chat_id] = count
        return count >= self._summarize_interval

    def entries(self, chat_id: int) -> List[LogEntry]:
        return list(self._buffers.get(chat_id, ()))

    def get_older_entries(self, chat_id: int) -> List[LogEntry]:
        buffer = self.entries(chat_id)
        cutoff = max(0, len(buffer) - self._recent_count)
        return buffer[:cutoff]

    def messages_since_summary(self, chat_id: int) -> int:
        return self._counters.get(chat_id, 0)

    def reset_counter(self, chat_id: int) -> None:
        self._counters[chat_id] = 0
        logger.debug("summary counter reset", extra={"chat_id": chat_id})

    def get_summary(self, chat_id: int) -> str:
        return self._summaries.get(chat_id)

    async def set_summary(self, chat_id: int, summary: str) -> None:
        """Replace the stored summary and start counting from zero again."""
        self._counters[chat_id] = 0
        await self._summaries.set(chat_id, summary)

    def get_chat_context(self, chat_id: int) -> Optional[ChatContext]:
        buffer = self.entries(chat_id)
        if not buffer:
            return None

        recent = buffer[-self._recent_count:] if self._recent_count > 0 else []
        return ChatContext(
            chat_title=self._titles.get(chat_id, "Unknown Chat"),
            summary=self._summaries.get(chat_id),
            recent_log="\n".join(format_log_entry(entry) for entry in recent),
        )


__all__ = ["ChatContext", "ChatLog", "LogEntry", "LogEntryType", "format_log_entry"]
