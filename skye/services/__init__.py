"""Service layer components."""

from .capabilities import ModelCapabilities
from .chat_config import ChatApiConfig, ChatConfigStore, ConfigWizard, CredentialResolver
from .conversation import ChatLog, RollingHistory, SummarizationScheduler, SummaryStore
from .json_store import JsonSnapshotFile
from .memory import MemoryEntry, MemoryStore
from .rate_limiter import RateLimiter


__all__ = [
    "ModelCapabilities",
    "ChatApiConfig",
    "ChatConfigStore",
    "ConfigWizard",
    "CredentialResolver",
    "ChatLog",
    "RollingHistory",
    "SummarizationScheduler",
    "SummaryStore",
    "JsonSnapshotFile",
    "MemoryEntry",
    "MemoryStore",
    "RateLimiter",
]
