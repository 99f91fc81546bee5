"""Assistant runtime - drives the bounded tool-calling loop against the LLM backend."""

import json
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union

from .tools import ToolResult, get_tool_schemas, handle_tool_call
from ...llm_client import (
    ApiCredentials,
    DeltaCallback,
    LLMError,
    accumulate_stream,
    request_chat_completion,
    stream_chat_completion,
)
from ...logging_config import logger
from ...services.memory import MemoryStore

CompletionFn = Callable[..., Awaitable[Dict[str, Any]]]
StreamFn = Callable[..., AsyncIterator[Dict[str, Any]]]


@dataclass
class InteractionResult:
    """Result from the assistant; an empty ``response`` means no answer was produced."""

    success: bool
    response: str
    error: Optional[str] = None
    tool_names: List[str] = field(default_factory=list)
    requests: int = 0


@dataclass(frozen=True)
class AssistantTurn:
    """The assistant's reply to one request, tool calls included."""

    message: Dict[str, Any]


@dataclass(frozen=True)
class ToolOutcome:
    """The textual result of one executed tool call."""

    tool_call_id: str
    content: str


TranscriptEvent = Union[AssistantTurn, ToolOutcome]


@dataclass(frozen=True)
class Transcript:
    messages: Tuple[Dict[str, Any], ...]

    def as_list(self) -> List[Dict[str, Any]]:
        return list(self.messages)


def reduce_transcript(transcript: Transcript, event: TranscriptEvent) -> Transcript:
    """Return a new transcript with *event* appended; the input is never mutated."""
    if isinstance(event, AssistantTurn):
        entry: Dict[str, Any] = {
            "role": "assistant",
            "content": event.message.get("content") or "",
        }
        if event.message.get("tool_calls"):
            entry["tool_calls"] = event.message["tool_calls"]
        return Transcript(transcript.messages + (entry,))
    if isinstance(event, ToolOutcome):
        entry = {"role": "tool", "tool_call_id": event.tool_call_id, "content": event.content}
        return Transcript(transcript.messages + (entry,))
    raise TypeError(f"unsupported transcript event: {type(event).__name__}")


@dataclass
class _ToolCall:
    """Parsed tool invocation from an LLM response."""

    identifier: Optional[str]
    name: str
    arguments: Dict[str, Any]


class AssistantRuntime:
    """Manages one request/response exchange, including memory tool round-trips."""

    def __init__(
        self,
        memory_store: MemoryStore,
        *,
        model: str,
        max_tool_rounds: int = 5,
        max_completion_tokens: Optional[int] = None,
        completion_fn: CompletionFn = request_chat_completion,
        stream_fn: StreamFn = stream_chat_completion,
    ) -> None:
        self.memory_store = memory_store
        self.model = model
        self.max_tool_rounds = max_tool_rounds
        self.max_completion_tokens = max_completion_tokens
        self.tool_schemas = get_tool_schemas()
        self._completion_fn = completion_fn
        self._stream_fn = stream_fn

    # Main entry point: run the loop and convert backend failures into a failed result
    async def run(
        self,
        chat_id: int,
        messages: Sequence[Dict[str, Any]],
        credentials: Optional[ApiCredentials] = None,
        on_delta: Optional[DeltaCallback] = None,
    ) -> InteractionResult:
        result = InteractionResult(success=True, response="")
        try:
            await self._run_interaction_loop(chat_id, Transcript(tuple(messages)), credentials, on_delta, result)
        except Exception as exc:
            logger.error("Assistant request failed", extra={"chat_id": chat_id, "error": str(exc)})
            result.success = False
            result.response = ""
            result.error = str(exc)
        return result

    # Core loop: one initial request plus at most max_tool_rounds follow-ups
    async def _run_interaction_loop(
        self,
        chat_id: int,
        transcript: Transcript,
        credentials: Optional[ApiCredentials],
        on_delta: Optional[DeltaCallback],
        result: InteractionResult,
    ) -> Transcript:
        for _ in range(self.max_tool_rounds + 1):
            assistant_message = await self._make_llm_call(transcript, credentials, on_delta)
            result.requests += 1

            tool_calls = self._parse_tool_calls(assistant_message.get("tool_calls") or [])
            transcript = reduce_transcript(transcript, AssistantTurn(assistant_message))

            if not tool_calls:
                result.response = (assistant_message.get("content") or "").strip()
                if not result.response:
                    logger.warning("Assistant loop exited without content", extra={"chat_id": chat_id})
                return transcript

            for tool_call in tool_calls:
                result.tool_names.append(tool_call.name)
                outcome = await self._execute_tool(chat_id, tool_call)
                transcript = reduce_transcript(
                    transcript,
                    ToolOutcome(tool_call_id=tool_call.identifier or tool_call.name, content=outcome.content),
                )

        logger.warning(
            "Reached tool iteration limit without final response",
            extra={"chat_id": chat_id, "requests": result.requests},
        )
        result.response = ""
        return transcript

    # Issue one backend request, streamed when a delta callback is supplied
    async def _make_llm_call(
        self,
        transcript: Transcript,
        credentials: Optional[ApiCredentials],
        on_delta: Optional[DeltaCallback],
    ) -> Dict[str, Any]:
        logger.debug(
            "Assistant calling LLM",
            extra={"model": self.model, "messages": len(transcript.messages), "stream": on_delta is not None},
        )
        request = {
            "model": self.model,
            "messages": transcript.as_list(),
            "credentials": credentials,
            "tools": self.tool_schemas,
            "max_completion_tokens": self.max_completion_tokens,
        }
        if on_delta is not None:
            return await accumulate_stream(self._stream_fn(**request), on_delta)

        response = await self._completion_fn(**request)
        return self._extract_assistant_message(response)

    # Extract the assistant's message from the chat completion payload
    def _extract_assistant_message(self, response: Dict[str, Any]) -> Dict[str, Any]:
        choice = (response.get("choices") or [{}])[0]
        message = choice.get("message")
        if not isinstance(message, dict):
            raise LLMError("LLM response did not include an assistant message")
        return message

    # Convert raw LLM tool calls into structured _ToolCall objects with validation
    def _parse_tool_calls(self, raw_tool_calls: List[Dict[str, Any]]) -> List[_ToolCall]:
        parsed: List[_ToolCall] = []
        for raw in raw_tool_calls:
            function_block = raw.get("function") or {}
            name = function_block.get("name")
            if not isinstance(name, str) or not name:
                logger.warning("Skipping tool call without name", extra={"tool": raw})
                continue

            arguments, error = self._parse_tool_arguments(function_block.get("arguments"))
            if error:
                logger.warning("Tool call arguments invalid", extra={"tool": name, "error": error})
                arguments = {"__invalid_arguments__": error}

            parsed.append(_ToolCall(identifier=raw.get("id"), name=name, arguments=arguments))

        return parsed

    # Parse tool arguments from a dict or a JSON string, reporting errors
    def _parse_tool_arguments(self, raw_arguments: Any) -> Tuple[Dict[str, Any], Optional[str]]:
        if raw_arguments is None:
            return {}, None

        if isinstance(raw_arguments, dict):
            return raw_arguments, None

        if isinstance(raw_arguments, str):
            if not raw_arguments.strip():
                return {}, None
            try:
                parsed = json.loads(raw_arguments)
            except json.JSONDecodeError as exc:
                return {}, f"invalid json: {exc}"
            if isinstance(parsed, dict):
                return parsed, None
            return {}, "decoded arguments were not an object"

        return {}, f"unsupported argument type: {type(raw_arguments).__name__}"

    # Execute a tool call; failures become textual results instead of exceptions
    async def _execute_tool(self, chat_id: int, tool_call: _ToolCall) -> ToolResult:
        if "__invalid_arguments__" in tool_call.arguments:
            error = tool_call.arguments["__invalid_arguments__"]
            logger.warning(f"Tool '{tool_call.name}' rejected", extra={"error": error})
            return ToolResult(success=False, content=f"Error: {error}")

        logger.debug(f"Tool '{tool_call.name}' start", extra={"chat_id": chat_id})
        result = await handle_tool_call(self.memory_store, chat_id, tool_call.name, tool_call.arguments)
        if result.success:
            logger.info(f"Tool '{tool_call.name}' completed")
        else:
            logger.warning(f"Tool '{tool_call.name}' error", extra={"detail": result.content})
        return result


__all__ = [
    "AssistantRuntime",
    "AssistantTurn",
    "InteractionResult",
    "ToolOutcome",
    "Transcript",
    "reduce_transcript",
]
