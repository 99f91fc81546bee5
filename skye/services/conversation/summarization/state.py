from __future__ import annotations

from pathlib import Path
from typing import Dict

from ...json_store import JsonSnapshotFile


class SummaryStore:
    """Persisted rolling summary per chat; an absent key means no summary yet."""

    def __init__(self, path: Path) -> None:
        self._file = JsonSnapshotFile(path)
        self._summaries: Dict[int, str] = {}
        for key, value in self._file.load().items():
            try:
                chat_id = int(key)
            except ValueError:
                continue
            if isinstance(value, str):
                self._summaries[chat_id] = value

    def get(self, chat_id: int) -> str:
        return self._summaries.get(chat_id, "")

    async def set(self, chat_id: int, summary: str) -> None:
        self._summaries[chat_id] = summary
        await self._file.write(self._snapshot)

    def _snapshot(self) -> Dict[str, str]:
        return {str(chat_id): summary for chat_id, summary in self._summaries.items()}


__all__ = ["SummaryStore"]
