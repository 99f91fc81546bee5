"""Whole-file JSON snapshots shared by the persisted per-chat stores."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from ..logging_config import logger


class JsonSnapshotFile:
    """A JSON object on disk that is always rewritten in full.

    Loading never fails: a missing, unreadable or malformed file yields an empty
    mapping. Writes go through a temp file and an atomic replace so a crash
    mid-write leaves the previous snapshot intact.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock: Optional[asyncio.Lock] = None

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Dict[str, Any]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            logger.warning("snapshot read failed", extra={"error": str(exc), "path": str(self._path)})
            return {}

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("snapshot corrupted; starting empty", extra={"error": str(exc), "path": str(self._path)})
            return {}

        if not isinstance(data, dict):
            logger.warning("snapshot has unexpected shape; starting empty", extra={"path": str(self._path)})
            return {}
        return data

    async def write(self, snapshot: Callable[[], Dict[str, Any]]) -> None:
        """Serialize ``snapshot()`` under the write lock and persist it off the event loop."""
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            data = json.dumps(snapshot(), indent=2, ensure_ascii=False)
            await asyncio.to_thread(self._write_text, data)

    def _write_text(self, data: str) -> None:
        temp_path = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(data, encoding="utf-8")
            temp_path.replace(self._path)
        except OSError as exc:
            logger.error("snapshot write failed", extra={"error": str(exc), "path": str(self._path)})
            raise
        finally:
            if temp_path.exists():
                try:
                    temp_path.unlink()
                except OSError:  # pragma: no cover - best effort cleanup
                    pass


__all__ = ["JsonSnapshotFile"]
