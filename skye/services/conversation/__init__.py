"""Conversation-related service helpers."""

from .history import RollingHistory
from .log import ChatContext, ChatLog, LogEntry, LogEntryType, format_log_entry
from .summarization import ChatSummarizer, SummarizationScheduler, SummaryStore

__all__ = [
    "ChatContext",
    "ChatLog",
    "ChatSummarizer",
    "LogEntry",
    "LogEntryType",
    "RollingHistory",
    "SummarizationScheduler",
    "SummaryStore",
    "format_log_entry",
]
