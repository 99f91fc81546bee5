"""Per-chat long-term memory."""

from .store import MemoryEntry, MemoryStore

__all__ = ["MemoryEntry", "MemoryStore"]
