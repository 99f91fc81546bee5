"""Long-term per-chat memory persisted as one JSON snapshot."""

from __future__ import annotations

import random
import string
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from ...logging_config import logger
from ..json_store import JsonSnapshotFile

_ID_ALPHABET = string.ascii_lowercase + string.digits
_ID_LENGTH = 8


@dataclass(frozen=True)
class MemoryEntry:
    """A remembered fact; created or deleted, never edited."""

    id: str
    content: str
    created_at: str

    def to_json(self) -> Dict[str, str]:
        return {"id": self.id, "content": self.content, "createdAt": self.created_at}

    @classmethod
    def from_json(cls, data: Any) -> Optional["MemoryEntry"]:
        if not isinstance(data, dict):
            return None
        entry_id, content = data.get("id"), data.get("content")
        if not isinstance(entry_id, str) or not isinstance(content, str):
            return None
        created_at = data.get("createdAt")
        return cls(id=entry_id, content=content, created_at=created_at if isinstance(created_at, str) else "")


def _generate_id() -> str:
    return "mem_" + "".join(random.choices(_ID_ALPHABET, k=_ID_LENGTH))


class MemoryStore:
    """In-memory cache of memories per chat, rewritten to disk on every mutation."""

    def __init__(self, path: Path) -> None:
        self._file = JsonSnapshotFile(path)
        self._entries: Dict[int, List[MemoryEntry]] = {}
        self._load()

    def _load(self) -> None:
        for key, raw_entries in self._file.load().items():
            try:
                chat_id = int(key)
            except ValueError:
                continue
            if not isinstance(raw_entries, list):
                continue
            entries = [entry for entry in map(MemoryEntry.from_json, raw_entries) if entry is not None]
            if entries:
                self._entries[chat_id] = entries

    def _snapshot(self) -> Dict[str, List[Dict[str, str]]]:
        return {
            str(chat_id): [entry.to_json() for entry in entries]
            for chat_id, entries in self._entries.items()
        }

    async def _persist(self) -> None:
        await self._file.write(self._snapshot)

    def list(self, chat_id: int) -> List[MemoryEntry]:
        return list(self._entries.get(chat_id, ()))

    def _new_id(self, chat_id: int) -> str:
        taken = {entry.id for entry in self._entries.get(chat_id, ())}
        candidate = _generate_id()
        while candidate in taken:
            candidate = _generate_id()
        return candidate

    async def add(self, chat_id: int, content: str) -> MemoryEntry:
        entry = MemoryEntry(
            id=self._new_id(chat_id),
            content=content,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        self._entries.setdefault(chat_id, []).append(entry)
        logger.info("memory saved", extra={"chat_id": chat_id, "memory_id": entry.id})
        await self._persist()
        return entry

    async def delete(self, chat_id: int, memory_id: str) -> bool:
        entries = self._entries.get(chat_id)
        if not entries:
            return False
        remaining = [entry for entry in entries if entry.id != memory_id]
        if len(remaining) == len(entries):
            return False
        if remaining:
            self._entries[chat_id] = remaining
        else:
            del self._entries[chat_id]
        logger.info("memory deleted", extra={"chat_id": chat_id, "memory_id": memory_id})
        await self._persist()
        return True

    async def clear(self, chat_id: int) -> None:
        self._entries.pop(chat_id, None)
        logger.info("memories cleared", extra={"chat_id": chat_id})
        await self._persist()


__all__ = ["MemoryEntry", "MemoryStore"]
