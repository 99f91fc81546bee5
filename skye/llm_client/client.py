from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Tuple

import httpx

from ..config import get_settings
from ..logging_config import logger


class LLMError(RuntimeError):
    """Raised when the LLM backend returns an error response."""


@dataclass(frozen=True)
class ApiCredentials:
    """API key and base URL used for one chat's backend calls."""

    api_key: str
    base_url: str


DeltaCallback = Callable[[str], Awaitable[None]]


def default_credentials() -> ApiCredentials:
    settings = get_settings()
    return ApiCredentials(api_key=settings.openai_key or "", base_url=settings.base_url)


def _headers(credentials: ApiCredentials, *, stream: bool = False) -> Dict[str, str]:
    key = (credentials.api_key or "").strip()
    if not key:
        raise LLMError("Missing API key")

    return {
        "Authorization": f"Bearer {key}",
        "Content-Type": "application/json",
        "Accept": "text/event-stream" if stream else "application/json",
    }


def _endpoint(credentials: ApiCredentials, path: str) -> str:
    return f"{credentials.base_url.rstrip('/')}/{path.lstrip('/')}"


def _build_messages(messages: List[Dict[str, Any]], system: Optional[str]) -> List[Dict[str, Any]]:
    if system:
        return [{"role": "system", "content": system}, *messages]
    return messages


def _handle_response_error(exc: httpx.HTTPStatusError) -> None:
    response = exc.response
    detail: str
    try:
        payload = response.json()
        error = payload.get("error") or payload.get("message") or payload
        if isinstance(error, dict):
            detail = error.get("message") or json.dumps(error)
        else:
            detail = str(error)
    except (ValueError, AttributeError):
        detail = response.text
    raise LLMError(f"LLM request failed ({response.status_code}): {detail}") from exc


def _build_payload(
    *,
    model: str,
    messages: List[Dict[str, Any]],
    system: Optional[str],
    tools: Optional[List[Dict[str, Any]]],
    max_completion_tokens: Optional[int],
    stream: bool,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "model": model,
        "messages": _build_messages(messages, system),
        "stream": stream,
    }
    if tools:
        payload["tools"] = tools
    if max_completion_tokens:
        payload["max_completion_tokens"] = max_completion_tokens
    return payload


async def request_chat_completion(
    *,
    model: str,
    messages: List[Dict[str, Any]],
    credentials: Optional[ApiCredentials] = None,
    system: Optional[str] = None,
    tools: Optional[List[Dict[str, Any]]] = None,
    max_completion_tokens: Optional[int] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Request a chat completion and return the raw JSON payload."""

    creds = credentials or default_credentials()
    payload = _build_payload(
        model=model,
        messages=messages,
        system=system,
        tools=tools,
        max_completion_tokens=max_completion_tokens,
        stream=False,
    )
    if extra:
        payload.update(extra)

    async with httpx.AsyncClient() as client:
        try:
            response = await client.post(
                _endpoint(creds, "chat/completions"),
                headers=_headers(creds),
                json=payload,
                timeout=get_settings().request_timeout,
            )
            try:
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                _handle_response_error(exc)
            return response.json()
        except httpx.HTTPError as exc:
            raise LLMError(f"LLM request failed: {exc}") from exc
        except ValueError as exc:
            raise LLMError(f"LLM response was not valid JSON: {exc}") from exc


def parse_sse_line(line: str) -> Optional[Dict[str, Any]]:
    """Decode one server-sent-event line into a chunk; ``None`` for keep-alives and ``[DONE]``."""

    if not line or line.startswith(":") or not line.startswith("data:"):
        return None
    data = line[5:].strip()
    if not data or data == "[DONE]":
        return None
    try:
        chunk = json.loads(data)
    except json.JSONDecodeError as exc:
        logger.warning("failed to parse SSE chunk", extra={"error": str(exc)})
        return None
    return chunk if isinstance(chunk, dict) else None


async def stream_chat_completion(
    *,
    model: str,
    messages: List[Dict[str, Any]],
    credentials: Optional[ApiCredentials] = None,
    system: Optional[str] = None,
    tools: Optional[List[Dict[str, Any]]] = None,
    max_completion_tokens: Optional[int] = None,
) -> AsyncIterator[Dict[str, Any]]:
    """Stream a chat completion, yielding decoded chunks as they arrive."""

    creds = credentials or default_credentials()
    payload = _build_payload(
        model=model,
        messages=messages,
        system=system,
        tools=tools,
        max_completion_tokens=max_completion_tokens,
        stream=True,
    )

    timeout = httpx.Timeout(get_settings().request_timeout, connect=10.0)
    async with httpx.AsyncClient(timeout=timeout) as client:
        try:
            async with client.stream(
                "POST",
                _endpoint(creds, "chat/completions"),
                headers=_headers(creds, stream=True),
                json=payload,
            ) as response:
                if response.status_code >= 400:
                    await response.aread()
                    try:
                        response.raise_for_status()
                    except httpx.HTTPStatusError as exc:
                        _handle_response_error(exc)
                async for line in response.aiter_lines():
                    chunk = parse_sse_line(line)
                    if chunk is not None:
                        if chunk.get("error"):
                            raise LLMError(f"LLM stream failed: {chunk['error']}")
                        yield chunk
        except httpx.HTTPError as exc:
            raise LLMError(f"LLM request failed: {exc}") from exc


async def accumulate_stream(
    chunks: AsyncIterator[Dict[str, Any]],
    on_delta: Optional[DeltaCallback] = None,
) -> Dict[str, Any]:
    """Fold streamed chunks into one assistant message.

    Content deltas are reported to *on_delta* with the cumulative text so far.
    Tool-call deltas are merged by index and never reported.
    """

    content = ""
    tool_calls: Dict[int, Dict[str, Any]] = {}

    async for chunk in chunks:
        choices = chunk.get("choices") or []
        if not choices:
            continue
        delta = choices[0].get("delta") or {}

        piece = delta.get("content")
        if piece:
            content += piece
            if on_delta is not None:
                await on_delta(content)

        for raw in delta.get("tool_calls") or []:
            index = raw.get("index", len(tool_calls))
            call = tool_calls.setdefault(
                index,
                {"id": None, "type": "function", "function": {"name": "", "arguments": ""}},
            )
            if raw.get("id"):
                call["id"] = raw["id"]
            function = raw.get("function") or {}
            if function.get("name"):
                call["function"]["name"] += function["name"]
            if function.get("arguments"):
                call["function"]["arguments"] += function["arguments"]

    message: Dict[str, Any] = {"role": "assistant", "content": content}
    if tool_calls:
        message["tool_calls"] = [tool_calls[index] for index in sorted(tool_calls)]
    return message


async def list_models(credentials: Optional[ApiCredentials] = None) -> List[Dict[str, Any]]:
    """Return the backend's model registry entries."""

    creds = credentials or default_credentials()
    async with httpx.AsyncClient() as client:
        try:
            response = await client.get(
                _endpoint(creds, "models"),
                headers=_headers(creds),
                timeout=get_settings().request_timeout,
            )
            try:
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                _handle_response_error(exc)
            payload = response.json()
        except httpx.HTTPError as exc:
            raise LLMError(f"Model listing failed: {exc}") from exc
        except ValueError as exc:
            raise LLMError(f"Model listing was not valid JSON: {exc}") from exc

    data = payload.get("data") if isinstance(payload, dict) else payload
    if not isinstance(data, list):
        raise LLMError("Model listing missing data")
    return [item for item in data if isinstance(item, dict)]


async def request_image_generation(
    *,
    model: str,
    prompt: str,
    credentials: Optional[ApiCredentials] = None,
) -> List[str]:
    """Ask an image-capable model for images; returns inline data URLs."""

    response = await request_chat_completion(
        model=model,
        messages=[{"role": "user", "content": prompt}],
        credentials=credentials,
        extra={"modalities": ["image", "text"]},
    )
    choices = response.get("choices") or []
    if not choices:
        raise LLMError("Image response missing choices")
    message = choices[0].get("message") or {}

    urls: List[str] = []
    for image in message.get("images") or []:
        url = (image.get("image_url") or {}).get("url") if isinstance(image, dict) else None
        if isinstance(url, str) and url:
            urls.append(url)
    return urls


def decode_data_url(url: str) -> Tuple[str, bytes]:
    """Split a ``data:<mime>;base64,<payload>`` URL into its mime type and bytes."""

    if not url.startswith("data:") or "," not in url:
        raise LLMError("Image payload was not an inline data URL")
    header, encoded = url[5:].split(",", 1)
    mime = header.split(";", 1)[0] or "application/octet-stream"
    try:
        return mime, base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise LLMError(f"Image payload was not valid base64: {exc}") from exc


def encode_data_url(data: bytes, mime: str = "image/jpeg") -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


__all__ = [
    "ApiCredentials",
    "DeltaCallback",
    "LLMError",
    "accumulate_stream",
    "decode_data_url",
    "default_credentials",
    "encode_data_url",
    "list_models",
    "parse_sse_line",
    "request_chat_completion",
    "request_image_generation",
    "stream_chat_completion",
]
