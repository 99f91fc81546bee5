"""Per-chat API key and base URL overrides."""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

from ...logging_config import logger
from ..json_store import JsonSnapshotFile


@dataclass(frozen=True)
class ChatApiConfig:
    api_key: Optional[str] = None
    base_url: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.api_key and not self.base_url

    def to_json(self) -> Dict[str, str]:
        payload: Dict[str, str] = {}
        if self.api_key:
            payload["apiKey"] = self.api_key
        if self.base_url:
            payload["baseUrl"] = self.base_url
        return payload

    @classmethod
    def from_json(cls, data: Any) -> "ChatApiConfig":
        if not isinstance(data, dict):
            return cls()
        api_key, base_url = data.get("apiKey"), data.get("baseUrl")
        return cls(
            api_key=api_key if isinstance(api_key, str) and api_key else None,
            base_url=base_url if isinstance(base_url, str) and base_url else None,
        )


class ChatConfigStore:
    """Stores chat-supplied credentials; records with neither field are dropped."""

    def __init__(self, path: Path) -> None:
        self._file = JsonSnapshotFile(path)
        self._configs: Dict[int, ChatApiConfig] = {}
        for key, value in self._file.load().items():
            try:
                chat_id = int(key)
            except ValueError:
                continue
            config = ChatApiConfig.from_json(value)
            if not config.is_empty:
                self._configs[chat_id] = config

    def get(self, chat_id: int) -> ChatApiConfig:
        return self._configs.get(chat_id, ChatApiConfig())

    async def set_api_key(self, chat_id: int, api_key: str) -> None:
        await self._update(chat_id, api_key=api_key.strip() or None)
        logger.info("chat api key updated", extra={"chat_id": chat_id})

    async def set_base_url(self, chat_id: int, base_url: str) -> None:
        await self._update(chat_id, base_url=base_url.strip() or None)
        logger.info("chat base url updated", extra={"chat_id": chat_id, "base_url": base_url.strip()})

    async def reset_api_key(self, chat_id: int) -> None:
        if chat_id not in self._configs:
            return
        await self._update(chat_id, api_key=None)

    async def reset_base_url(self, chat_id: int) -> None:
        if chat_id not in self._configs:
            return
        await self._update(chat_id, base_url=None)

    async def _update(self, chat_id: int, **changes: Optional[str]) -> None:
        updated = replace(self.get(chat_id), **changes)
        if updated.is_empty:
            self._configs.pop(chat_id, None)
        else:
            self._configs[chat_id] = updated
        await self._file.write(self._snapshot)

    def _snapshot(self) -> Dict[str, Dict[str, str]]:
        return {str(chat_id): config.to_json() for chat_id, config in self._configs.items()}


__all__ = ["ChatApiConfig", "ChatConfigStore"]
