from .chat import InboundMessage
from .content import (
    IMAGE_PLACEHOLDER,
    ContentPart,
    ImagePart,
    MessageContent,
    RollingMessage,
    StructuredContent,
    TextContent,
    TextPart,
)
from .meta import CapabilityResponse, HealthResponse, RootResponse
from .telegram import (
    CallbackQuery,
    PhotoSize,
    TelegramChat,
    TelegramMessage,
    TelegramUpdate,
    TelegramUser,
)

__all__ = [
    "InboundMessage",
    "IMAGE_PLACEHOLDER",
    "ContentPart",
    "ImagePart",
    "MessageContent",
    "RollingMessage",
    "StructuredContent",
    "TextContent",
    "TextPart",
    "CapabilityResponse",
    "HealthResponse",
    "RootResponse",
    "CallbackQuery",
    "PhotoSize",
    "TelegramChat",
    "TelegramMessage",
    "TelegramUpdate",
    "TelegramUser",
]
