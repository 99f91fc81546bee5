"""Routes validated Telegram updates to the config wizard, commands, or the chat service."""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from ...llm_client import encode_data_url
from ...logging_config import logger
from ...models import CallbackQuery, InboundMessage, TelegramMessage, TelegramUpdate
from ...utils import format_unix_timestamp
from ..chat_config import WizardState, render_panel
from ..chat_config.wizard import (
    API_KEY_PROMPT,
    BASE_URL_PROMPT,
    CALLBACK_CLOSE,
    CALLBACK_PREFIX,
    CALLBACK_RESET_KEY,
    CALLBACK_RESET_URL,
    CALLBACK_SET_KEY,
    CALLBACK_SET_URL,
)
from ..conversation.chat_handler import ChatService
from .client import TelegramClient, TelegramError

BOT_COMMANDS: List[Dict[str, str]] = [
    {"command": "start", "description": "Say hello"},
    {"command": "help", "description": "Show what I can do"},
    {"command": "reset", "description": "Clear the conversation context for this thread"},
    {"command": "config", "description": "Configure the API key and base URL for this chat"},
    {"command": "remember", "description": "Save a memory: /remember <text>"},
    {"command": "memories", "description": "List saved memories"},
    {"command": "forget", "description": "Delete a memory: /forget <id>"},
    {"command": "forgetall", "description": "Delete all memories for this chat"},
    {"command": "imagine", "description": "Generate an image: /imagine <prompt>"},
]

START_MESSAGE = "Hi, I'm Skye! Mention me or reply to one of my messages and I'll answer. Send /help for more."
HELP_MESSAGE = "\n".join(
    ["Here's what I understand:"] + [f"/{item['command']} - {item['description']}" for item in BOT_COMMANDS]
)


def parse_command(text: str, bot_username: str) -> Optional[Tuple[str, str]]:
    """Split ``/cmd@bot args`` into ``(cmd, args)``; commands aimed at other bots are ``None``."""
    if not text.startswith("/"):
        return None
    head, _, args = text.partition(" ")
    command, _, target = head[1:].partition("@")
    if not command:
        return None
    if target and bot_username and target.lower() != bot_username.lower():
        return None
    return command.lower(), args.strip()


class UpdateDispatcher:
    """Handles one update at a time; callers run it as a background task."""

    def __init__(
        self,
        chat_service: ChatService,
        client: TelegramClient,
        *,
        bot_username: str = "",
        bot_id: Optional[int] = None,
    ) -> None:
        self.chat_service = chat_service
        self.client = client
        self.bot_username = bot_username.lstrip("@")
        self.bot_id = bot_id

    def set_identity(self, *, username: Optional[str], bot_id: Optional[int]) -> None:
        if username:
            self.bot_username = username.lstrip("@")
        if bot_id is not None:
            self.bot_id = bot_id

    async def dispatch(self, update: TelegramUpdate) -> None:
        if update.callback_query is not None:
            await self._handle_callback(update.callback_query)
            return

        message = update.message
        if message is None:
            logger.debug("ignoring update without message", extra={"update_id": update.update_id})
            return

        if await self._handle_wizard(message):
            return

        text = message.text or ""
        parsed = parse_command(text, self.bot_username) if text else None
        if parsed is not None:
            await self._handle_command(message, *parsed)
            return
        if text.startswith("/"):
            return

        await self.chat_service.handle_message(await self._to_inbound(message))

    # ------------------------------------------------------------------
    # Config panel and wizard
    # ------------------------------------------------------------------
    async def _handle_callback(self, query: CallbackQuery) -> None:
        data = query.data or ""
        message = query.message
        if not data.startswith(CALLBACK_PREFIX) or message is None:
            await self.client.answer_callback_query(query.id)
            return

        chat_id = message.chat.id
        store = self.chat_service.config_store
        wizard = self.chat_service.wizard
        await self.client.answer_callback_query(query.id)

        if data == CALLBACK_SET_KEY:
            wizard.start(chat_id, WizardState.AWAITING_API_KEY)
            await self._reply(message, API_KEY_PROMPT)
        elif data == CALLBACK_SET_URL:
            wizard.start(chat_id, WizardState.AWAITING_BASE_URL)
            await self._reply(message, BASE_URL_PROMPT)
        elif data == CALLBACK_RESET_KEY:
            await store.reset_api_key(chat_id)
            await self._refresh_panel(message)
        elif data == CALLBACK_RESET_URL:
            await store.reset_base_url(chat_id)
            await self._refresh_panel(message)
        elif data == CALLBACK_CLOSE:
            wizard.cancel(chat_id)
            await self._try_delete(chat_id, message.message_id)
        else:
            logger.warning("unknown config callback", extra={"data": data})

    async def _handle_wizard(self, message: TelegramMessage) -> bool:
        chat_id = message.chat.id
        state = self.chat_service.wizard.pending(chat_id)
        if state is None:
            return False

        outcome = await self.chat_service.wizard.consume(chat_id, message.text)
        if outcome is None:
            return False

        if outcome.state is WizardState.AWAITING_API_KEY and outcome.stored:
            await self._try_delete(chat_id, message.message_id)

        if outcome.stored:
            text, keyboard = render_panel(self.chat_service.config_store.get(chat_id))
            await self._reply(message, "Saved.\n\n" + text, reply_markup=keyboard)
        else:
            await self._reply(message, "Cancelled.")
        return True

    async def _refresh_panel(self, message: TelegramMessage) -> None:
        text, keyboard = render_panel(self.chat_service.config_store.get(message.chat.id))
        try:
            await self.client.edit_message_text(message.chat.id, message.message_id, text, reply_markup=keyboard)
        except TelegramError as exc:
            logger.warning("config panel refresh failed", extra={"error": str(exc)})

    async def _try_delete(self, chat_id: int, message_id: int) -> None:
        try:
            await self.client.delete_message(chat_id, message_id)
        except TelegramError as exc:
            logger.warning("message deletion failed", extra={"chat_id": chat_id, "error": str(exc)})

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    async def _handle_command(self, message: TelegramMessage, command: str, args: str) -> None:
        chat_id = message.chat.id
        service = self.chat_service
        logger.info("command received", extra={"chat_id": chat_id, "command": command})

        if command == "start":
            await self._reply(message, START_MESSAGE)
        elif command == "help":
            await self._reply(message, HELP_MESSAGE)
        elif command == "reset":
            service.reset_thread(self._thread_key(message))
            await self._reply(message, "Context cleared for this thread.")
        elif command == "config":
            text, keyboard = render_panel(service.config_store.get(chat_id))
            await self._reply(message, text, reply_markup=keyboard)
        elif command == "remember":
            if not args:
                await self._reply(message, "Usage: /remember <text>")
                return
            entry = await service.memory_store.add(chat_id, args)
            await self._reply(message, f"Remembered ({entry.id}).")
        elif command == "memories":
            entries = service.memory_store.list(chat_id)
            if not entries:
                await self._reply(message, "No memories saved yet.")
                return
            await self._reply(message, "\n".join(f"[{entry.id}] {entry.content}" for entry in entries))
        elif command == "forget":
            if not args:
                await self._reply(message, "Usage: /forget <id>")
                return
            if await service.memory_store.delete(chat_id, args):
                await self._reply(message, f"Forgot {args}.")
            else:
                await self._reply(message, f"No memory with id {args}.")
        elif command == "forgetall":
            await service.memory_store.clear(chat_id)
            await self._reply(message, "All memories for this chat were deleted.")
        elif command == "imagine":
            await self._handle_imagine(message, args)
        else:
            logger.debug("unknown command", extra={"command": command})

    async def _handle_imagine(self, message: TelegramMessage, prompt: str) -> None:
        if not prompt:
            await self._reply(message, "Usage: /imagine <prompt>")
            return
        try:
            mime_type, data = await self.chat_service.generate_image(message.chat.id, prompt)
        except PermissionError as exc:
            await self._reply(message, str(exc))
            return
        except Exception as exc:
            logger.error("image generation failed", extra={"chat_id": message.chat.id, "error": str(exc)})
            await self._reply(message, "Sorry, I couldn't generate that image.")
            return
        await self.client.send_photo(
            message.chat.id,
            data,
            mime_type=mime_type,
            caption=prompt,
            reply_to_message_id=message.message_id,
            message_thread_id=message.thread_id,
        )

    # ------------------------------------------------------------------
    # Inbound conversion
    # ------------------------------------------------------------------
    async def _to_inbound(self, message: TelegramMessage) -> InboundMessage:
        text = message.text if message.text is not None else (message.caption or "")
        image_urls: List[str] = []
        photo = message.largest_photo()
        if photo is not None:
            try:
                data = await self.client.download_file(photo.file_id)
            except TelegramError as exc:
                logger.warning("photo download failed", extra={"chat_id": message.chat.id, "error": str(exc)})
            else:
                image_urls.append(encode_data_url(data, "image/jpeg"))

        # Stickers, voice notes and documents are logged but never answered
        answerable = message.text is not None or photo is not None
        reply = message.reply_to_message
        return InboundMessage(
            chat_id=message.chat.id,
            thread_id=message.thread_id,
            message_id=message.message_id,
            chat_title=message.chat.display_title,
            is_private=message.chat.is_private,
            sender=message.sender_name,
            text=text,
            image_urls=image_urls,
            reply_to=reply.sender_name if reply is not None else None,
            timestamp=format_unix_timestamp(message.date) if message.date else "",
            addressed=answerable and self._is_addressed(message, text),
        )

    def _is_addressed(self, message: TelegramMessage, text: str) -> bool:
        if message.chat.is_private:
            return True
        if self.bot_username and f"@{self.bot_username.lower()}" in text.lower():
            return True
        reply = message.reply_to_message
        if reply is None or reply.from_user is None:
            return False
        if self.bot_id is not None:
            return reply.from_user.id == self.bot_id
        return bool(
            reply.from_user.is_bot
            and self.bot_username
            and (reply.from_user.username or "").lower() == self.bot_username.lower()
        )

    def _thread_key(self, message: TelegramMessage) -> str:
        if message.thread_id is None:
            return str(message.chat.id)
        return f"{message.chat.id}:{message.thread_id}"

    async def _reply(self, message: TelegramMessage, text: str, **kwargs) -> None:
        await self.client.send_message(
            message.chat.id,
            text,
            reply_to_message_id=message.message_id,
            message_thread_id=message.thread_id,
            **kwargs,
        )


_dispatcher: Optional[UpdateDispatcher] = None


def get_update_dispatcher() -> Optional[UpdateDispatcher]:
    """Get the singleton dispatcher; ``None`` when no bot token is configured."""
    global _dispatcher
    if _dispatcher is None:
        from ...config import get_settings
        from ..conversation.chat_handler import get_chat_service
        from .client import get_telegram_client

        client = get_telegram_client()
        if client is None:
            return None
        _dispatcher = UpdateDispatcher(
            get_chat_service(),
            client,
            bot_username=get_settings().bot_username,
        )
    return _dispatcher


__all__ = [
    "BOT_COMMANDS",
    "HELP_MESSAGE",
    "START_MESSAGE",
    "UpdateDispatcher",
    "get_update_dispatcher",
    "parse_command",
]
