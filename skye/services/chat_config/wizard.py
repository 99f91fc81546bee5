"""Two-state configuration wizard that captures the next text message of a chat."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from ...logging_config import logger
from .store import ChatApiConfig, ChatConfigStore

CANCEL_COMMAND = "/cancel"

CALLBACK_PREFIX = "cfg:"
CALLBACK_SET_KEY = "cfg:set_key"
CALLBACK_SET_URL = "cfg:set_url"
CALLBACK_RESET_KEY = "cfg:reset_key"
CALLBACK_RESET_URL = "cfg:reset_url"
CALLBACK_CLOSE = "cfg:close"


class WizardState(str, Enum):
    AWAITING_API_KEY = "awaiting_api_key"
    AWAITING_BASE_URL = "awaiting_base_url"


@dataclass(frozen=True)
class WizardOutcome:
    """What happened to a message the wizard consumed."""

    state: WizardState
    stored: bool


class ConfigWizard:
    """Pending wizard state per chat; starting a new wizard replaces any pending one."""

    def __init__(self, config_store: ChatConfigStore) -> None:
        self._config_store = config_store
        self._pending: Dict[int, WizardState] = {}

    def start(self, chat_id: int, state: WizardState) -> None:
        self._pending[chat_id] = state
        logger.debug("config wizard started", extra={"chat_id": chat_id, "state": state.value})

    def cancel(self, chat_id: int) -> bool:
        return self._pending.pop(chat_id, None) is not None

    def pending(self, chat_id: int) -> Optional[WizardState]:
        return self._pending.get(chat_id)

    async def consume(self, chat_id: int, text: Optional[str]) -> Optional[WizardOutcome]:
        """Take first refusal on a text message; ``None`` means the wizard is idle."""
        state = self._pending.pop(chat_id, None)
        if state is None:
            return None

        value = (text or "").strip()
        if not value or value == CANCEL_COMMAND:
            return WizardOutcome(state=state, stored=False)

        if state is WizardState.AWAITING_API_KEY:
            await self._config_store.set_api_key(chat_id, value)
        else:
            await self._config_store.set_base_url(chat_id, value)
        return WizardOutcome(state=state, stored=True)


def render_panel(config: ChatApiConfig) -> Tuple[str, Dict[str, Any]]:
    """Return the config panel text and its inline keyboard markup."""
    lines = [
        "API Configuration",
        "",
        f"API Key: {'✅ set' if config.api_key else '❌ not set'}",
        f"Base URL: {'✅ ' + config.base_url if config.base_url else 'default'}",
    ]
    keyboard = {
        "inline_keyboard": [
            [
                {"text": "Set API Key", "callback_data": CALLBACK_SET_KEY},
                {"text": "Set Base URL", "callback_data": CALLBACK_SET_URL},
            ],
            [
                {"text": "Reset API Key", "callback_data": CALLBACK_RESET_KEY},
                {"text": "Reset Base URL", "callback_data": CALLBACK_RESET_URL},
            ],
            [{"text": "Close", "callback_data": CALLBACK_CLOSE}],
        ]
    }
    return "\n".join(lines), keyboard


API_KEY_PROMPT = (
    "Send your API key as the next message.\n\n"
    "I'll try to delete it afterwards; delete it yourself if it stays visible. Send /cancel to abort."
)
BASE_URL_PROMPT = (
    "Send the base URL as the next message (e.g. https://openrouter.ai/api/v1). Send /cancel to abort."
)


__all__ = [
    "API_KEY_PROMPT",
    "BASE_URL_PROMPT",
    "CALLBACK_CLOSE",
    "CALLBACK_PREFIX",
    "CALLBACK_RESET_KEY",
    "CALLBACK_RESET_URL",
    "CALLBACK_SET_KEY",
    "CALLBACK_SET_URL",
    "CANCEL_COMMAND",
    "ConfigWizard",
    "WizardOutcome",
    "WizardState",
    "render_panel",
]
