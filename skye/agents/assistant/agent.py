"""Assistant helpers for prompt construction and context assembly."""

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, TypeVar

from ...models import IMAGE_PLACEHOLDER, RollingMessage, StructuredContent, TextContent, TextPart
from ...services.conversation.log import ChatContext
from ...services.memory import MemoryEntry

_prompt_path = Path(__file__).parent / "system_prompt.md"
SYSTEM_PROMPT = _prompt_path.read_text(encoding="utf-8").strip()

CONTEXT_WINDOW = 20

T = TypeVar("T")


# Keep only the most recent messages so prompt size stays bounded
def build_context(history: Sequence[T], window: int = CONTEXT_WINDOW) -> List[T]:
    """Return the last *window* messages of *history*, preserving order."""
    if window <= 0:
        return []
    start = max(0, len(history) - window)
    return list(history[start:])


# Collapse image parts to text when the active model cannot read images
def sanitize_message(message: RollingMessage, supports_images: Optional[bool]) -> RollingMessage:
    if supports_images is not False:
        return message

    content = message.content
    if isinstance(content, TextContent):
        return message
    if isinstance(content, StructuredContent):
        if not content.has_images:
            return message
        text = "\n".join(part for part in content.text_parts if part) or IMAGE_PLACEHOLDER
        return RollingMessage(role=message.role, content=StructuredContent((TextPart(text),)))
    raise TypeError(f"unsupported message content: {type(content).__name__}")


def sanitize_messages(
    messages: Sequence[RollingMessage],
    supports_images: Optional[bool],
) -> List[RollingMessage]:
    """Strip image parts for text-only models; unknown capability passes through unchanged."""
    return [sanitize_message(message, supports_images) for message in messages]


# Render stored memories so the model can reference and delete them by id
def _render_memories(memories: Sequence[MemoryEntry]) -> str:
    if not memories:
        return "No memories saved yet."
    return "\n".join(f"- [{entry.id}] {entry.content}" for entry in memories)


def _render_chat_context(chat_context: ChatContext) -> str:
    sections = [f"Chat: {chat_context.chat_title}"]
    if chat_context.summary.strip():
        sections.append(f"Summary of earlier conversation:\n{chat_context.summary.strip()}")
    if chat_context.recent_log.strip():
        sections.append(f"Recent messages:\n{chat_context.recent_log}")
    return "\n\n".join(sections)


def build_system_prompt(
    memories: Sequence[MemoryEntry] = (),
    chat_context: Optional[ChatContext] = None,
) -> str:
    """Combine the persona prompt with long-term memory and chat context."""
    sections = [SYSTEM_PROMPT, f"## Saved memories\n{_render_memories(memories)}"]
    if chat_context is not None:
        sections.append(f"## Chat context\n{_render_chat_context(chat_context)}")
    return "\n\n".join(sections)


def assemble_messages(
    system_prompt: str,
    history: Sequence[RollingMessage],
    *,
    supports_images: Optional[bool],
    window: int = CONTEXT_WINDOW,
) -> List[Dict[str, Any]]:
    """Build the request payload: system message plus the sanitized rolling window."""
    recent = sanitize_messages(build_context(history, window), supports_images)
    return [{"role": "system", "content": system_prompt}, *(message.as_llm_message() for message in recent)]
