from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class InboundMessage(BaseModel):
    """Platform-neutral view of an inbound chat message handed to the chat service."""

    model_config = ConfigDict(extra="ignore")

    chat_id: int
    thread_id: Optional[int] = None
    message_id: Optional[int] = None
    chat_title: Optional[str] = None
    is_private: bool = False
    sender: str = Field(default="Unknown")
    text: str = Field(default="")
    image_urls: List[str] = Field(default_factory=list)
    reply_to: Optional[str] = None
    timestamp: str = Field(default="")
    addressed: bool = False

    @property
    def thread_key(self) -> str:
        if self.thread_id is None:
            return str(self.chat_id)
        return f"{self.chat_id}:{self.thread_id}"

    @property
    def has_images(self) -> bool:
        return bool(self.image_urls)
