"""Tool definitions for the assistant."""

import json
from dataclasses import dataclass
from typing import Any, Dict, List

from ...logging_config import logger
from ...services.memory import MemoryStore


@dataclass
class ToolResult:
    """Standardized outcome of a tool call; ``content`` is what the model reads back."""

    success: bool
    content: str


# Tool schemas for LLM API
TOOL_SCHEMAS: List[Dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": "save_memory",
            "description": "Save a piece of information to long-term memory for this chat. Use this when the user asks you to remember something, or when you encounter important facts worth preserving (names, preferences, project details, etc.).",
            "parameters": {
                "type": "object",
                "properties": {
                    "content": {
                        "type": "string",
                        "description": "The information to remember, written as a clear factual statement.",
                    },
                },
                "required": ["content"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "delete_memory",
            "description": "Delete a specific memory by its ID. Use this when the user asks you to forget something.",
            "parameters": {
                "type": "object",
                "properties": {
                    "memory_id": {
                        "type": "string",
                        "description": "The ID of the memory to delete (e.g. mem_abc123).",
                    },
                },
                "required": ["memory_id"],
            },
        },
    },
]


async def save_memory(store: MemoryStore, chat_id: int, content: Any) -> ToolResult:
    """Persist a new memory for the chat."""
    if not isinstance(content, str) or not content.strip():
        return ToolResult(success=False, content="Error: memory content must be a non-empty string.")
    entry = await store.add(chat_id, content.strip())
    return ToolResult(success=True, content=f"Memory saved with ID {entry.id}.")


async def delete_memory(store: MemoryStore, chat_id: int, memory_id: Any) -> ToolResult:
    """Remove a memory by id; a missing id is reported, not raised."""
    if not isinstance(memory_id, str) or not memory_id.strip():
        return ToolResult(success=False, content="Error: memory_id must be a non-empty string.")
    memory_id = memory_id.strip()
    if await store.delete(chat_id, memory_id):
        return ToolResult(success=True, content=f"Memory {memory_id} deleted.")
    return ToolResult(success=False, content=f"Memory {memory_id} not found.")


# Return predefined tool schemas for LLM function calling
def get_tool_schemas() -> List[Dict[str, Any]]:
    """Return OpenAI-compatible tool schemas."""
    return TOOL_SCHEMAS


# Route tool calls to their handlers; unknown argument keys are ignored and every failure becomes text
async def handle_tool_call(store: MemoryStore, chat_id: int, name: str, arguments: Any) -> ToolResult:
    """Handle a tool call issued by the assistant."""
    try:
        if isinstance(arguments, str):
            args = json.loads(arguments) if arguments.strip() else {}
        elif isinstance(arguments, dict):
            args = arguments
        elif arguments is None:
            args = {}
        else:
            return ToolResult(success=False, content="Error: invalid arguments format.")

        if not isinstance(args, dict):
            return ToolResult(success=False, content="Error: arguments must be a JSON object.")

        if name == "save_memory":
            return await save_memory(store, chat_id, args.get("content"))
        if name == "delete_memory":
            return await delete_memory(store, chat_id, args.get("memory_id"))

        logger.warning("unexpected tool", extra={"tool": name})
        return ToolResult(success=False, content=f"Unknown tool: {name}")
    except json.JSONDecodeError:
        return ToolResult(success=False, content="Error: invalid JSON arguments.")
    except Exception as exc:
        logger.error("tool call failed", extra={"tool": name, "error": str(exc)})
        return ToolResult(success=False, content=f"Error: failed to execute {name}.")
