"""Chat-completion message shapes kept in rolling history.

Message content is a tagged union: plain ``TextContent`` or ``StructuredContent``
made of text and image parts. Everything that inspects content goes through
``isinstance`` checks against these classes instead of poking at raw dicts.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Tuple, Union


IMAGE_PLACEHOLDER = "[image]"


@dataclass(frozen=True)
class TextPart:
    text: str

    def as_llm_part(self) -> Dict[str, Any]:
        return {"type": "text", "text": self.text}


@dataclass(frozen=True)
class ImagePart:
    url: str

    def as_llm_part(self) -> Dict[str, Any]:
        return {"type": "image_url", "image_url": {"url": self.url}}


ContentPart = Union[TextPart, ImagePart]


@dataclass(frozen=True)
class TextContent:
    text: str

    def as_llm_content(self) -> str:
        return self.text


@dataclass(frozen=True)
class StructuredContent:
    parts: Tuple[ContentPart, ...]

    @property
    def has_images(self) -> bool:
        return any(isinstance(part, ImagePart) for part in self.parts)

    @property
    def text_parts(self) -> List[str]:
        return [part.text for part in self.parts if isinstance(part, TextPart)]

    def as_llm_content(self) -> List[Dict[str, Any]]:
        return [part.as_llm_part() for part in self.parts]


MessageContent = Union[TextContent, StructuredContent]


@dataclass(frozen=True)
class RollingMessage:
    """One chat-completion message in a thread's rolling history."""

    role: str
    content: MessageContent

    @classmethod
    def text(cls, role: str, text: str) -> "RollingMessage":
        return cls(role=role, content=TextContent(text))

    @classmethod
    def with_images(cls, role: str, caption: str, image_urls: List[str]) -> "RollingMessage":
        parts: List[ContentPart] = []
        if caption:
            parts.append(TextPart(caption))
        parts.extend(ImagePart(url) for url in image_urls)
        return cls(role=role, content=StructuredContent(tuple(parts)))

    def as_llm_message(self) -> Dict[str, Any]:
        return {"role": self.role, "content": self.content.as_llm_content()}


__all__ = [
    "IMAGE_PLACEHOLDER",
    "ContentPart",
    "ImagePart",
    "MessageContent",
    "RollingMessage",
    "StructuredContent",
    "TextContent",
    "TextPart",
]
