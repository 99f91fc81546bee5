"""Assistant module."""

from .agent import (
    CONTEXT_WINDOW,
    SYSTEM_PROMPT,
    assemble_messages,
    build_context,
    build_system_prompt,
    sanitize_message,
    sanitize_messages,
)
from .runtime import (
    AssistantRuntime,
    AssistantTurn,
    InteractionResult,
    ToolOutcome,
    Transcript,
    reduce_transcript,
)
from .tools import ToolResult, get_tool_schemas, handle_tool_call

__all__ = [
    "CONTEXT_WINDOW",
    "SYSTEM_PROMPT",
    "AssistantRuntime",
    "AssistantTurn",
    "InteractionResult",
    "ToolOutcome",
    "Transcript",
    "assemble_messages",
    "build_context",
    "build_system_prompt",
    "reduce_transcript",
    "sanitize_message",
    "sanitize_messages",
    "ToolResult",
    "get_tool_schemas",
    "handle_tool_call",
]
