from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

from ...agents.assistant import AssistantRuntime, assemble_messages, build_system_prompt
from ...config import Settings, get_settings
from ...llm_client import (
    ApiCredentials,
    LLMError,
    decode_data_url,
    list_models,
    request_chat_completion,
    request_image_generation,
    stream_chat_completion,
)
from ...logging_config import logger
from ...models import InboundMessage, RollingMessage
from ...utils import clean_markdown, now_in_timezone
from ..capabilities import ModelCapabilities
from ..chat_config import ChatConfigStore, ConfigWizard, CredentialResolver
from ..memory import MemoryStore
from ..rate_limiter import RateLimiter
from .history import RollingHistory
from .log import ChatLog, LogEntry, LogEntryType
from .summarization import ChatSummarizer, SummarizationScheduler, SummaryStore

BOT_NAME = "Skye"
ERROR_MESSAGE = "Sorry, something went wrong. Please try again."
NO_ANSWER_MESSAGE = "Sorry, I couldn't generate a response. Please try again."
NO_ACCESS_MESSAGE = "This chat has no API access yet. Use /config to set an API key."


class Messenger(Protocol):
    """Outbound side of the chat platform used by the chat service."""

    async def send_message(
        self,
        chat_id: int,
        text: str,
        *,
        reply_to_message_id: Optional[int] = None,
        message_thread_id: Optional[int] = None,
        reply_markup: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:  # pragma: no cover - typing protocol
        ...

    async def edit_message_text(
        self,
        chat_id: int,
        message_id: int,
        text: str,
        *,
        reply_markup: Optional[Dict[str, Any]] = None,
    ) -> None:  # pragma: no cover - typing protocol
        ...


class StreamingReply:
    """Turns cumulative streamed text into one sent message plus throttled edits."""

    def __init__(
        self,
        messenger: Messenger,
        inbound: InboundMessage,
        *,
        interval: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._messenger = messenger
        self._inbound = inbound
        self._interval = interval
        self._clock = clock
        self._message_id: Optional[int] = None
        self._last_sent = ""
        self._last_update: Optional[float] = None

    @property
    def started(self) -> bool:
        return self._message_id is not None

    async def on_delta(self, text_so_far: str) -> None:
        now = self._clock()
        if self._last_update is not None and now - self._last_update < self._interval:
            return
        self._last_update = now
        await self._push(clean_markdown(text_so_far))

    async def finish(self, text: str) -> None:
        await self._push(text)

    async def _push(self, text: str) -> None:
        if not text.strip() or text == self._last_sent:
            return
        if self._message_id is None:
            sent = await self._messenger.send_message(
                self._inbound.chat_id,
                text,
                reply_to_message_id=self._inbound.message_id,
                message_thread_id=self._inbound.thread_id,
            )
            self._message_id = (sent or {}).get("message_id")
        else:
            try:
                await self._messenger.edit_message_text(self._inbound.chat_id, self._message_id, text)
            except Exception as exc:
                logger.warning("streamed edit failed", extra={"chat_id": self._inbound.chat_id, "error": str(exc)})
                return
        self._last_sent = text


class ChatService:
    """Owns every piece of conversation state and runs the per-message pipeline.

    Inbound message -> chat log -> rolling history and rate limit (both mutated
    before the first await) -> access gate -> per-thread lock -> context
    assembly -> tool-calling loop -> reply -> chat log -> summarization when due.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        memory_store: MemoryStore,
        chat_log: ChatLog,
        config_store: ChatConfigStore,
        credentials: CredentialResolver,
        wizard: ConfigWizard,
        history: RollingHistory,
        rate_limiter: RateLimiter,
        capabilities: ModelCapabilities,
        runtime: AssistantRuntime,
        summarization: SummarizationScheduler,
        messenger: Optional[Messenger] = None,
        image_fn: Callable[..., Any] = request_image_generation,
    ) -> None:
        self.settings = settings
        self.memory_store = memory_store
        self.chat_log = chat_log
        self.config_store = config_store
        self.credentials = credentials
        self.wizard = wizard
        self.history = history
        self.rate_limiter = rate_limiter
        self.capabilities = capabilities
        self.runtime = runtime
        self.summarization = summarization
        self.messenger = messenger
        self._image_fn = image_fn
        self._thread_locks: Dict[str, asyncio.Lock] = {}

    # ------------------------------------------------------------------
    # Inbound messages
    # ------------------------------------------------------------------
    async def handle_message(self, inbound: InboundMessage) -> Optional[str]:
        """Process one inbound message; returns the delivered answer, if any."""

        due = self.chat_log.log_message(inbound.chat_id, self._inbound_log_entry(inbound), inbound.chat_title)

        if not inbound.addressed:
            self._maybe_summarize(inbound.chat_id, due)
            return None

        thread_key = inbound.thread_key
        user_turn = self._rolling_message(inbound)
        self.history.append(thread_key, user_turn)
        if not self.rate_limiter.can_respond(thread_key):
            logger.info("rate limited", extra={"thread": thread_key})
            self._maybe_summarize(inbound.chat_id, due)
            return None

        if not self.credentials.has_access(inbound.chat_id):
            logger.info("chat has no access", extra={"chat_id": inbound.chat_id})
            self._maybe_summarize(inbound.chat_id, due)
            await self._send(inbound, NO_ACCESS_MESSAGE)
            return None
        credentials = self.credentials.resolve(inbound.chat_id)

        logger.info("Incoming message", extra={"chat_id": inbound.chat_id, "thread": thread_key})
        async with self._thread_lock(thread_key):
            answer = await self._respond(inbound, user_turn, credentials)

        if answer is not None:
            due = self.chat_log.log_message(
                inbound.chat_id,
                LogEntry(
                    sender=BOT_NAME,
                    timestamp=self._now(),
                    type=LogEntryType.TEXT,
                    content=answer,
                    reply_to=inbound.sender,
                ),
            ) or due
        self._maybe_summarize(inbound.chat_id, due, credentials)
        return answer

    async def _respond(
        self,
        inbound: InboundMessage,
        user_turn: RollingMessage,
        credentials: ApiCredentials,
    ) -> Optional[str]:
        system_prompt = build_system_prompt(
            self.memory_store.list(inbound.chat_id),
            self.chat_log.get_chat_context(inbound.chat_id),
        )
        messages = assemble_messages(
            system_prompt,
            self.history.snapshot(inbound.thread_key),
            supports_images=self.capabilities.supports_images(self.runtime.model),
            window=self.settings.context_window,
        )

        streaming: Optional[StreamingReply] = None
        if self.settings.stream_responses and self.messenger is not None:
            streaming = StreamingReply(self.messenger, inbound, interval=self.settings.stream_edit_interval)

        result = await self.runtime.run(
            inbound.chat_id,
            messages,
            credentials,
            on_delta=streaming.on_delta if streaming else None,
        )

        if not result.success:
            await self._deliver(inbound, streaming, ERROR_MESSAGE)
            return None
        if not result.response:
            await self._deliver(inbound, streaming, NO_ANSWER_MESSAGE)
            return None

        text = clean_markdown(result.response)
        await self._deliver(inbound, streaming, text)

        self.history.insert_after(inbound.thread_key, user_turn, RollingMessage.text("assistant", text))
        return text

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def reset_thread(self, thread_key: str) -> None:
        self.history.reset(thread_key)
        logger.info("context reset", extra={"thread": thread_key})

    async def generate_image(self, chat_id: int, prompt: str) -> Tuple[str, bytes]:
        """Generate one image for *prompt* using the chat's credentials."""
        credentials = self.credentials.resolve(chat_id)
        if credentials is None:
            raise PermissionError(NO_ACCESS_MESSAGE)
        urls = await self._image_fn(model=self.settings.image_model, prompt=prompt, credentials=credentials)
        if not urls:
            raise LLMError("Image response contained no images")
        return decode_data_url(urls[0])

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _thread_lock(self, thread_key: str) -> asyncio.Lock:
        lock = self._thread_locks.get(thread_key)
        if lock is None:
            lock = self._thread_locks[thread_key] = asyncio.Lock()
        return lock

    def _maybe_summarize(
        self,
        chat_id: int,
        due: bool,
        credentials: Optional[ApiCredentials] = None,
    ) -> None:
        if not due:
            return
        credentials = credentials or self.credentials.resolve(chat_id)
        if credentials is None:
            self.chat_log.reset_counter(chat_id)
            return
        self.summarization.schedule(chat_id, credentials)

    async def _deliver(self, inbound: InboundMessage, streaming: Optional[StreamingReply], text: str) -> None:
        # A partially streamed reply is edited into the final text or the apology
        if streaming is not None:
            await streaming.finish(text)
        else:
            await self._send(inbound, text)

    async def _send(self, inbound: InboundMessage, text: str) -> None:
        if self.messenger is None:
            logger.warning("no messenger configured; dropping reply", extra={"chat_id": inbound.chat_id})
            return
        await self.messenger.send_message(
            inbound.chat_id,
            text,
            reply_to_message_id=inbound.message_id,
            message_thread_id=inbound.thread_id,
        )

    def _now(self) -> str:
        return now_in_timezone("%Y-%m-%d %H:%M")

    def _inbound_log_entry(self, inbound: InboundMessage) -> LogEntry:
        if inbound.has_images:
            entry_type = LogEntryType.IMAGE
            content = inbound.text or "(photo)"
        else:
            entry_type = LogEntryType.TEXT if inbound.text else LogEntryType.OTHER
            content = inbound.text or "(no text)"
        return LogEntry(
            sender=inbound.sender,
            timestamp=inbound.timestamp or self._now(),
            type=entry_type,
            content=content,
            reply_to=inbound.reply_to,
        )

    def _rolling_message(self, inbound: InboundMessage) -> RollingMessage:
        if inbound.has_images:
            return RollingMessage.with_images("user", inbound.text, inbound.image_urls)
        return RollingMessage.text("user", inbound.text)


def build_chat_service(
    settings: Settings,
    *,
    messenger: Optional[Messenger] = None,
    completion_fn: Callable[..., Any] = request_chat_completion,
    stream_fn: Callable[..., Any] = stream_chat_completion,
    list_models_fn: Callable[..., Any] = list_models,
    image_fn: Callable[..., Any] = request_image_generation,
    clock: Callable[[], float] = time.monotonic,
) -> ChatService:
    """Wire a chat service and its state containers from *settings*."""

    memory_store = MemoryStore(settings.memories_path)
    chat_log = ChatLog(
        SummaryStore(settings.chat_summaries_path),
        max_buffer=settings.chat_log_max_buffer,
        recent_count=settings.chat_log_recent_count,
        summarize_interval=settings.summarize_interval,
    )
    config_store = ChatConfigStore(settings.chat_configs_path)
    runtime = AssistantRuntime(
        memory_store,
        model=settings.model,
        max_tool_rounds=settings.max_tool_rounds,
        max_completion_tokens=settings.max_completion_tokens,
        completion_fn=completion_fn,
        stream_fn=stream_fn,
    )
    summarizer = ChatSummarizer(chat_log, model=settings.model, completion_fn=completion_fn)
    return ChatService(
        settings=settings,
        memory_store=memory_store,
        chat_log=chat_log,
        config_store=config_store,
        credentials=CredentialResolver(
            config_store,
            allowed_ids=settings.allowed_ids,
            global_api_key=settings.openai_key,
            global_base_url=settings.base_url,
        ),
        wizard=ConfigWizard(config_store),
        history=RollingHistory(settings.rolling_history_limit),
        rate_limiter=RateLimiter(settings.rate_limit_cooldown, clock=clock),
        capabilities=ModelCapabilities(list_models_fn),
        runtime=runtime,
        summarization=SummarizationScheduler(summarizer),
        messenger=messenger,
        image_fn=image_fn,
    )


_chat_service: Optional[ChatService] = None


def get_chat_service() -> ChatService:
    """Get the process-wide chat service, creating it on first use."""
    global _chat_service
    if _chat_service is None:
        from ..telegram.client import get_telegram_client

        _chat_service = build_chat_service(get_settings(), messenger=get_telegram_client())
    return _chat_service


__all__ = [
    "BOT_NAME",
    "ChatService",
    "ERROR_MESSAGE",
    "Messenger",
    "NO_ACCESS_MESSAGE",
    "NO_ANSWER_MESSAGE",
    "StreamingReply",
    "build_chat_service",
    "get_chat_service",
]
