"""Client for the Telegram Bot API."""

import json
from typing import Any, Dict, List, Optional

import httpx

from ...config import get_settings
from ...logging_config import logger

MAX_MESSAGE_LENGTH = 4096


class TelegramError(RuntimeError):
    """Raised when the Bot API rejects a call or cannot be reached."""


def _form_fields(body: Dict[str, Any]) -> Dict[str, str]:
    return {
        key: json.dumps(value) if isinstance(value, (dict, list)) else str(value)
        for key, value in body.items()
    }


def _truncate(text: str) -> str:
    if len(text) <= MAX_MESSAGE_LENGTH:
        return text
    return text[: MAX_MESSAGE_LENGTH - 3] + "..."


class TelegramClient:
    """Thin async wrapper over the Bot API methods the bot uses."""

    BASE_URL = "https://api.telegram.org"

    def __init__(self, token: str, *, timeout: float = 30.0) -> None:
        self.token = token
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(base_url=self.BASE_URL, timeout=self.timeout)
        return self._client

    async def _call(
        self,
        method: str,
        payload: Optional[Dict[str, Any]] = None,
        *,
        files: Optional[Dict[str, Any]] = None,
    ) -> Any:
        client = await self._get_client()
        url = f"/bot{self.token}/{method}"
        body = {key: value for key, value in (payload or {}).items() if value is not None}
        try:
            if files:
                response = await client.post(url, data=_form_fields(body), files=files)
            else:
                response = await client.post(url, json=body)
            data = response.json()
        except httpx.HTTPError as exc:
            logger.error("Telegram request failed", extra={"method": method, "error": str(exc)})
            raise TelegramError(f"Telegram {method} failed: {exc}") from exc
        except ValueError as exc:
            raise TelegramError(f"Telegram {method} returned invalid JSON") from exc

        if not isinstance(data, dict) or not data.get("ok"):
            description = data.get("description") if isinstance(data, dict) else None
            logger.error(
                "Telegram API error",
                extra={"method": method, "status_code": response.status_code, "description": description},
            )
            raise TelegramError(f"Telegram {method} failed ({response.status_code}): {description}")
        return data.get("result")

    async def get_me(self) -> Dict[str, Any]:
        return await self._call("getMe")

    async def set_my_commands(self, commands: List[Dict[str, str]]) -> None:
        await self._call("setMyCommands", {"commands": commands})

    async def set_webhook(self, url: str, secret_token: Optional[str] = None) -> None:
        await self._call(
            "setWebhook",
            {"url": url, "secret_token": secret_token, "drop_pending_updates": True},
        )

    async def send_message(
        self,
        chat_id: int,
        text: str,
        *,
        reply_to_message_id: Optional[int] = None,
        message_thread_id: Optional[int] = None,
        reply_markup: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Send a text message, replying to *reply_to_message_id* when given."""
        payload: Dict[str, Any] = {
            "chat_id": chat_id,
            "text": _truncate(text),
            "message_thread_id": message_thread_id,
            "reply_markup": reply_markup,
        }
        if reply_to_message_id is not None:
            payload["reply_parameters"] = {
                "message_id": reply_to_message_id,
                "allow_sending_without_reply": True,
            }
        logger.info("Sending Telegram message", extra={"chat_id": chat_id, "message_length": len(text)})
        return await self._call("sendMessage", payload)

    async def edit_message_text(
        self,
        chat_id: int,
        message_id: int,
        text: str,
        *,
        reply_markup: Optional[Dict[str, Any]] = None,
    ) -> None:
        await self._call(
            "editMessageText",
            {
                "chat_id": chat_id,
                "message_id": message_id,
                "text": _truncate(text),
                "reply_markup": reply_markup,
            },
        )

    async def delete_message(self, chat_id: int, message_id: int) -> None:
        await self._call("deleteMessage", {"chat_id": chat_id, "message_id": message_id})

    async def answer_callback_query(self, callback_query_id: str, text: Optional[str] = None) -> None:
        await self._call("answerCallbackQuery", {"callback_query_id": callback_query_id, "text": text})

    async def download_file(self, file_id: str) -> bytes:
        """Resolve *file_id* with getFile and fetch its bytes."""
        info = await self._call("getFile", {"file_id": file_id})
        file_path = (info or {}).get("file_path")
        if not file_path:
            raise TelegramError("Telegram getFile returned no file_path")

        client = await self._get_client()
        try:
            response = await client.get(f"/file/bot{self.token}/{file_path}")
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("Telegram file download failed", extra={"error": str(exc)})
            raise TelegramError(f"Telegram file download failed: {exc}") from exc
        return response.content

    async def send_photo(
        self,
        chat_id: int,
        photo: bytes,
        *,
        mime_type: str = "image/png",
        caption: Optional[str] = None,
        reply_to_message_id: Optional[int] = None,
        message_thread_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        extension = mime_type.split("/", 1)[-1] or "png"
        payload: Dict[str, Any] = {
            "chat_id": chat_id,
            "caption": caption[:1024] if caption else None,
            "message_thread_id": message_thread_id,
        }
        if reply_to_message_id is not None:
            payload["reply_parameters"] = {
                "message_id": reply_to_message_id,
                "allow_sending_without_reply": True,
            }
        files = {"photo": (f"image.{extension}", photo, mime_type)}
        return await self._call("sendPhoto", payload, files=files)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None


_telegram_client: Optional[TelegramClient] = None


def get_telegram_client() -> Optional[TelegramClient]:
    """Get the singleton Telegram client instance."""
    global _telegram_client

    if _telegram_client is None:
        settings = get_settings()
        if not settings.telegram_enabled:
            logger.warning("Telegram client not configured: missing BOT_TOKEN")
            return None
        _telegram_client = TelegramClient(token=settings.bot_token)

    return _telegram_client


__all__ = ["MAX_MESSAGE_LENGTH", "TelegramClient", "TelegramError", "get_telegram_client"]
