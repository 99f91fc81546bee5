"""Shared fixtures: isolated settings, a recording messenger and a service factory."""

from typing import Any, Callable, Dict

import pytest

from fakes import ALLOWED_CHAT, FakeClock, FakeMessenger, ScriptedBackend
from skye.config import Settings
from skye.services.conversation.chat_handler import ChatService, build_chat_service


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        data_dir=tmp_path,
        openai_key="sk-global",
        base_url="https://llm.example/v1",
        model="test/model",
        allowed_ids=frozenset({ALLOWED_CHAT}),
        stream_responses=False,
        bot_username="skye_bot",
    )


@pytest.fixture
def messenger() -> FakeMessenger:
    return FakeMessenger()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_service(settings, messenger, clock) -> Callable[..., ChatService]:
    def _make(backend: ScriptedBackend, *, stream_fn=None, image_fn=None, **overrides: Any) -> ChatService:
        effective = settings.model_copy(update=overrides) if overrides else settings
        kwargs: Dict[str, Any] = {"messenger": messenger, "completion_fn": backend, "clock": clock}
        if stream_fn is not None:
            kwargs["stream_fn"] = stream_fn
        if image_fn is not None:
            kwargs["image_fn"] = image_fn
        return build_chat_service(effective, **kwargs)

    return _make
