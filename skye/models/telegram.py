"""Pydantic models for the subset of Telegram Bot API updates the bot consumes."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class TelegramUser(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    is_bot: bool = False
    first_name: str = ""
    last_name: Optional[str] = None
    username: Optional[str] = None

    @property
    def display_name(self) -> str:
        name = " ".join(part for part in (self.first_name, self.last_name) if part).strip()
        return name or (self.username or str(self.id))


class TelegramChat(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    type: str
    title: Optional[str] = None
    username: Optional[str] = None
    first_name: Optional[str] = None

    @property
    def is_private(self) -> bool:
        return self.type == "private"

    @property
    def display_title(self) -> str:
        return self.title or self.first_name or self.username or str(self.id)


class PhotoSize(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    file_id: str
    file_unique_id: str = ""
    width: int = 0
    height: int = 0
    file_size: Optional[int] = None


class TelegramMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    message_id: int
    message_thread_id: Optional[int] = None
    is_topic_message: bool = False
    from_user: Optional[TelegramUser] = Field(default=None, alias="from")
    chat: TelegramChat
    date: int = 0
    text: Optional[str] = None
    caption: Optional[str] = None
    photo: List[PhotoSize] = Field(default_factory=list)
    reply_to_message: Optional["TelegramMessage"] = None

    @property
    def sender_name(self) -> str:
        return self.from_user.display_name if self.from_user else "Unknown"

    @property
    def thread_id(self) -> Optional[int]:
        """Forum topic id; plain replies in ordinary groups also carry message_thread_id."""
        return self.message_thread_id if self.is_topic_message else None

    def largest_photo(self) -> Optional[PhotoSize]:
        if not self.photo:
            return None
        return max(self.photo, key=lambda size: (size.width * size.height, size.file_size or 0))


class CallbackQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    from_user: Optional[TelegramUser] = Field(default=None, alias="from")
    message: Optional[TelegramMessage] = None
    data: Optional[str] = None


class TelegramUpdate(BaseModel):
    """Webhook payload delivered by Telegram."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    update_id: int
    message: Optional[TelegramMessage] = None
    callback_query: Optional[CallbackQuery] = None


TelegramMessage.model_rebuild()
