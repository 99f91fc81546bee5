"""Decide which backend credentials a chat may use."""

from __future__ import annotations

from typing import AbstractSet, Optional

from ...llm_client import ApiCredentials
from .store import ChatConfigStore


class CredentialResolver:
    """Allow-listed chats use the global credentials; others must bring their own key."""

    def __init__(
        self,
        config_store: ChatConfigStore,
        *,
        allowed_ids: AbstractSet[int],
        global_api_key: Optional[str],
        global_base_url: str,
    ) -> None:
        self._config_store = config_store
        self._allowed_ids = frozenset(allowed_ids)
        self._global_api_key = global_api_key or ""
        self._global_base_url = global_base_url

    def is_allowed(self, chat_id: int) -> bool:
        return chat_id in self._allowed_ids

    def resolve(self, chat_id: int) -> Optional[ApiCredentials]:
        if self.is_allowed(chat_id):
            return ApiCredentials(api_key=self._global_api_key, base_url=self._global_base_url)

        config = self._config_store.get(chat_id)
        if not config.api_key:
            return None
        return ApiCredentials(
            api_key=config.api_key,
            base_url=config.base_url or self._global_base_url,
        )

    def has_access(self, chat_id: int) -> bool:
        return self.resolve(chat_id) is not None


__all__ = ["CredentialResolver"]
