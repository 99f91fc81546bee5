from __future__ import annotations

import asyncio
from typing import Dict, Optional

from ....llm_client import ApiCredentials
from ....logging_config import logger
from .summarizer import ChatSummarizer


class SummarizationScheduler:
    """Runs due summarizations as background tasks, at most one per chat at a time."""

    def __init__(self, summarizer: ChatSummarizer) -> None:
        self._summarizer = summarizer
        self._running: Dict[int, asyncio.Task] = {}

    def schedule(self, chat_id: int, credentials: Optional[ApiCredentials] = None) -> bool:
        """Schedule a background summarization pass if one is not already running."""
        if chat_id in self._running:
            return False
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("summarization skipped (no running event loop)")
            return False

        task = loop.create_task(self._run_worker(chat_id, credentials))
        self._running[chat_id] = task
        task.add_done_callback(lambda _task: self._running.pop(chat_id, None))
        return True

    async def _run_worker(self, chat_id: int, credentials: Optional[ApiCredentials]) -> None:
        try:
            await self._summarizer.summarize_chat(chat_id, credentials)
        except Exception as exc:  # pragma: no cover - summarize_chat logs its own failures
            logger.error(
                "summarization worker failed",
                extra={"chat_id": chat_id, "error": str(exc)},
            )

    def is_running(self, chat_id: int) -> bool:
        return chat_id in self._running

    async def wait_idle(self) -> None:
        """Wait for every in-flight summarization to finish."""
        while self._running:
            await asyncio.gather(*list(self._running.values()), return_exceptions=True)


__all__ = ["SummarizationScheduler"]
