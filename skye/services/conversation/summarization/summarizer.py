from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Optional

from ....llm_client import ApiCredentials, LLMError, request_chat_completion
from ....logging_config import logger
from ..log import ChatLog
from .prompt_builder import SummaryPrompt, build_summarization_prompt

CompletionFn = Callable[..., Awaitable[Dict[str, Any]]]


def _extract_content(response: Dict[str, Any]) -> str:
    choices = response.get("choices") or []
    if not choices:
        raise LLMError("LLM response missing choices")
    message = choices[0].get("message") or {}
    content = (message.get("content") or "").strip()
    if not content:
        raise LLMError("LLM response missing content")
    return content


class ChatSummarizer:
    """Condenses the older part of a chat log into the chat's rolling summary."""

    def __init__(
        self,
        chat_log: ChatLog,
        *,
        model: str,
        completion_fn: CompletionFn = request_chat_completion,
    ) -> None:
        self._chat_log = chat_log
        self._model = model
        self._completion_fn = completion_fn

    async def _call_llm(self, prompt: SummaryPrompt, credentials: Optional[ApiCredentials]) -> str:
        response = await self._completion_fn(
            model=self._model,
            messages=prompt.messages,
            system=prompt.system_prompt,
            credentials=credentials,
        )
        return _extract_content(response)

    async def summarize_chat(self, chat_id: int, credentials: Optional[ApiCredentials] = None) -> bool:
        """Refresh the summary; the message counter is reset whatever the outcome."""

        older = self._chat_log.get_older_entries(chat_id)
        if not older:
            self._chat_log.reset_counter(chat_id)
            return False

        prompt = build_summarization_prompt(older)
        logger.info(
            "chat summarization started",
            extra={"chat_id": chat_id, "older_entries": len(older)},
        )

        try:
            summary_text = await self._call_llm(prompt, credentials)
        except Exception as exc:
            logger.error(
                "chat summarization failed",
                extra={"chat_id": chat_id, "error": str(exc)},
            )
            self._chat_log.reset_counter(chat_id)
            return False

        try:
            await self._chat_log.set_summary(chat_id, summary_text)
        except OSError as exc:
            logger.error(
                "chat summary persist failed",
                extra={"chat_id": chat_id, "error": str(exc)},
            )
            return False

        logger.info(f"Chat {chat_id}: summarized {len(older)} older messages")
        return True


__all__ = ["ChatSummarizer"]
