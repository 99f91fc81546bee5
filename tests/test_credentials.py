"""Tests for per-chat credential storage and resolution."""

import json

import pytest

from skye.llm_client import ApiCredentials
from skye.services.chat_config import ChatConfigStore, CredentialResolver

GLOBAL_URL = "https://llm.example/v1"


def _resolver(store: ChatConfigStore) -> CredentialResolver:
    return CredentialResolver(store, allowed_ids={1}, global_api_key="sk-global", global_base_url=GLOBAL_URL)


class TestCredentialResolver:
    def test_allowed_chat_uses_global_credentials(self, tmp_path):
        resolver = _resolver(ChatConfigStore(tmp_path / "c.json"))

        assert resolver.resolve(1) == ApiCredentials(api_key="sk-global", base_url=GLOBAL_URL)

    @pytest.mark.asyncio
    async def test_allowed_chat_ignores_its_own_config(self, tmp_path):
        store = ChatConfigStore(tmp_path / "c.json")
        await store.set_api_key(1, "sk-own")

        assert _resolver(store).resolve(1).api_key == "sk-global"

    def test_unconfigured_chat_has_no_access(self, tmp_path):
        resolver = _resolver(ChatConfigStore(tmp_path / "c.json"))

        assert resolver.resolve(2) is None
        assert resolver.has_access(2) is False

    @pytest.mark.asyncio
    async def test_chat_key_with_default_base_url(self, tmp_path):
        store = ChatConfigStore(tmp_path / "c.json")
        await store.set_api_key(2, "sk-chat")

        assert _resolver(store).resolve(2) == ApiCredentials(api_key="sk-chat", base_url=GLOBAL_URL)

    @pytest.mark.asyncio
    async def test_base_url_alone_grants_nothing(self, tmp_path):
        store = ChatConfigStore(tmp_path / "c.json")
        await store.set_base_url(2, "https://other.example/v1")
        resolver = _resolver(store)

        assert resolver.resolve(2) is None

        await store.set_api_key(2, "sk-chat")
        assert resolver.resolve(2).base_url == "https://other.example/v1"


class TestChatConfigStore:
    @pytest.mark.asyncio
    async def test_empty_records_are_dropped(self, tmp_path):
        path = tmp_path / "c.json"
        store = ChatConfigStore(path)
        await store.set_api_key(3, "sk-x")
        await store.set_base_url(3, "https://x.example")

        await store.reset_api_key(3)
        assert json.loads(path.read_text(encoding="utf-8")) == {"3": {"baseUrl": "https://x.example"}}

        await store.reset_base_url(3)
        assert json.loads(path.read_text(encoding="utf-8")) == {}
        assert store.get(3).is_empty

    @pytest.mark.asyncio
    async def test_reload_from_disk(self, tmp_path):
        path = tmp_path / "c.json"
        await ChatConfigStore(path).set_api_key(4, "sk-persisted")

        assert ChatConfigStore(path).get(4).api_key == "sk-persisted"
