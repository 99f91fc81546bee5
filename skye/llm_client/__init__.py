"""HTTP client for OpenAI-compatible chat completion backends."""

from .client import (
    ApiCredentials,
    DeltaCallback,
    LLMError,
    accumulate_stream,
    decode_data_url,
    default_credentials,
    encode_data_url,
    list_models,
    parse_sse_line,
    request_chat_completion,
    request_image_generation,
    stream_chat_completion,
)

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
