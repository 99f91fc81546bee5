"""Telegram Bot API transport."""

from .client import MAX_MESSAGE_LENGTH, TelegramClient, TelegramError, get_telegram_client
from .dispatcher import BOT_COMMANDS, UpdateDispatcher, get_update_dispatcher, parse_command

__all__ = [
    "BOT_COMMANDS",
    "MAX_MESSAGE_LENGTH",
    "TelegramClient",
    "TelegramError",
    "UpdateDispatcher",
    "get_telegram_client",
    "get_update_dispatcher",
    "parse_command",
]
