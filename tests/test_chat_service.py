"""End-to-end tests for the chat pipeline with a scripted backend."""

import asyncio

import pytest

from fakes import ALLOWED_CHAT, ScriptedBackend, completion, tool_call
from skye.llm_client import LLMError, encode_data_url
from skye.models import InboundMessage, RollingMessage
from skye.services.conversation.history import RollingHistory
from skye.services.conversation.chat_handler import ERROR_MESSAGE, NO_ACCESS_MESSAGE, NO_ANSWER_MESSAGE


def _inbound(text: str, *, chat_id: int = ALLOWED_CHAT, addressed: bool = True, **extra) -> InboundMessage:
    return InboundMessage(
        chat_id=chat_id,
        message_id=extra.pop("message_id", 10),
        chat_title="Friends",
        sender="Ana",
        text=text,
        timestamp="2026-01-01 10:00",
        addressed=addressed,
        **extra,
    )


class TestChatService:
    @pytest.mark.asyncio
    async def test_remembers_favorite_color_across_turns(self, make_service, messenger, clock):
        backend = ScriptedBackend(
            completion(tool_calls=[tool_call("save_memory", '{"content": "Ana\'s favorite color is blue"}')]),
            completion("Got it, blue it is!"),
            completion("Your favorite color is blue."),
        )
        service = make_service(backend)

        first = await service.handle_message(_inbound("Remember that my favorite color is blue"))
        clock.advance(3)
        second = await service.handle_message(_inbound("What's my favorite color?", message_id=11))

        assert first == "Got it, blue it is!"
        assert second == "Your favorite color is blue."
        assert [entry.content for entry in service.memory_store.list(ALLOWED_CHAT)] == [
            "Ana's favorite color is blue"
        ]
        system_prompt = backend.requests[2]["messages"][0]["content"]
        assert "Ana's favorite color is blue" in system_prompt
        assert messenger.texts == ["Got it, blue it is!", "Your favorite color is blue."]
        assert messenger.sent[1]["reply_to_message_id"] == 11

    @pytest.mark.asyncio
    async def test_history_carries_previous_turns(self, make_service, clock):
        backend = ScriptedBackend(completion("Hi Ana"), completion("Sure"))
        service = make_service(backend)

        await service.handle_message(_inbound("hello"))
        clock.advance(3)
        await service.handle_message(_inbound("and again"))

        roles = [(m["role"], m["content"]) for m in backend.requests[1]["messages"][1:]]
        assert roles == [("user", "hello"), ("assistant", "Hi Ana"), ("user", "and again")]

    @pytest.mark.asyncio
    async def test_unaddressed_messages_are_only_logged(self, make_service, messenger):
        backend = ScriptedBackend()
        service = make_service(backend)

        assert await service.handle_message(_inbound("just chatting", addressed=False)) is None

        assert backend.requests == []
        assert messenger.sent == []
        assert service.chat_log.entries(ALLOWED_CHAT)[0].content == "just chatting"
        assert service.history.snapshot(str(ALLOWED_CHAT)) == []

    @pytest.mark.asyncio
    async def test_rate_limited_message_still_joins_history(self, make_service, clock):
        backend = ScriptedBackend(completion("first"), completion("third"))
        service = make_service(backend)

        await service.handle_message(_inbound("one"))
        clock.advance(1)
        assert await service.handle_message(_inbound("two")) is None
        clock.advance(2)
        await service.handle_message(_inbound("three"))

        assert len(backend.requests) == 2
        contents = [m["content"] for m in backend.requests[1]["messages"][1:]]
        assert contents == ["one", "first", "two", "three"]

    @pytest.mark.asyncio
    async def test_threads_are_isolated(self, make_service):
        backend = ScriptedBackend(completion("a"), completion("b"))
        service = make_service(backend)

        await service.handle_message(_inbound("in topic 5", thread_id=5))
        await service.handle_message(_inbound("in topic 6", thread_id=6))

        assert [m["content"] for m in backend.requests[1]["messages"][1:]] == ["in topic 6"]

    @pytest.mark.asyncio
    async def test_chat_without_access_gets_config_hint(self, make_service, messenger):
        backend = ScriptedBackend()
        service = make_service(backend)

        await service.handle_message(_inbound("hello?", chat_id=99))

        assert backend.requests == []
        assert messenger.texts == [NO_ACCESS_MESSAGE]
        assert "/config" in NO_ACCESS_MESSAGE

    @pytest.mark.asyncio
    async def test_backend_failure_sends_apology(self, make_service, messenger):
        service = make_service(ScriptedBackend(RuntimeError("503")))

        assert await service.handle_message(_inbound("hi")) is None
        assert messenger.texts == [ERROR_MESSAGE]

    @pytest.mark.asyncio
    async def test_empty_answer_sends_fallback(self, make_service, messenger):
        service = make_service(ScriptedBackend(completion("   ")))

        await service.handle_message(_inbound("hi"))

        assert messenger.texts == [NO_ANSWER_MESSAGE]

    @pytest.mark.asyncio
    async def test_reply_markdown_is_cleaned_and_logged(self, make_service, messenger):
        service = make_service(ScriptedBackend(completion("**Bold** and `code`\\!")))

        answer = await service.handle_message(_inbound("format please"))

        assert answer == "Bold and code!"
        entries = service.chat_log.entries(ALLOWED_CHAT)
        assert entries[-1].sender == "Skye"
        assert entries[-1].reply_to == "Ana"
        assert entries[-1].content == "Bold and code!"

    @pytest.mark.asyncio
    async def test_images_dropped_for_text_only_model(self, make_service, settings):
        backend = ScriptedBackend(completion("nice photo"))
        service = make_service(backend)
        service.capabilities.set_image_support(settings.model, False)
        photo = encode_data_url(b"jpeg-bytes")

        await service.handle_message(_inbound("look", image_urls=[photo]))

        user = backend.requests[0]["messages"][-1]
        assert user["content"] == [{"type": "text", "text": "look"}]
        assert service.chat_log.entries(ALLOWED_CHAT)[0].type.value == "image"

    @pytest.mark.asyncio
    async def test_summarization_runs_when_due(self, make_service):
        backend = ScriptedBackend(completion("The group talked about lunch."))
        service = make_service(backend, summarize_interval=25)

        for index in range(25):
            await service.handle_message(_inbound(f"msg {index}", addressed=False))
        await service.summarization.wait_idle()

        assert service.chat_log.get_summary(ALLOWED_CHAT) == "The group talked about lunch."
        assert service.chat_log.messages_since_summary(ALLOWED_CHAT) == 0
        assert backend.requests[0]["credentials"].api_key == "sk-global"

    @pytest.mark.asyncio
    async def test_streaming_sends_then_edits(self, make_service, messenger):
        async def stream_fn(**request):
            for piece in ("Hello", " there", " friend"):
                yield {"choices": [{"delta": {"content": piece}}]}

        service = make_service(
            ScriptedBackend(), stream_fn=stream_fn, stream_responses=True, stream_edit_interval=0.0
        )

        answer = await service.handle_message(_inbound("hi"))

        assert answer == "Hello there friend"
        assert messenger.texts == ["Hello"]
        assert [edit["text"] for edit in messenger.edits] == ["Hello there", "Hello there friend"]
        assert messenger.edits[0]["message_id"] == messenger.sent[0]["message_id"]

    @pytest.mark.asyncio
    async def test_generate_image_requires_access(self, make_service):
        async def image_fn(**request):
            return [encode_data_url(b"png-bytes", "image/png")]

        service = make_service(ScriptedBackend(), image_fn=image_fn)

        assert await service.generate_image(ALLOWED_CHAT, "a red fox") == ("image/png", b"png-bytes")
        with pytest.raises(PermissionError):
            await service.generate_image(99, "a red fox")

    @pytest.mark.asyncio
    async def test_failed_stream_edits_partial_reply_into_apology(self, make_service, messenger):
        async def stream_fn(**request):
            yield {"choices": [{"delta": {"content": "Partial"}}]}
            raise LLMError("connection cut off")

        service = make_service(
            ScriptedBackend(), stream_fn=stream_fn, stream_responses=True, stream_edit_interval=0.0
        )

        assert await service.handle_message(_inbound("hi")) is None

        assert messenger.texts == ["Partial"]
        assert messenger.edits[-1]["text"] == ERROR_MESSAGE
        assert messenger.edits[-1]["message_id"] == messenger.sent[0]["message_id"]

    @pytest.mark.asyncio
    async def test_chat_without_access_still_resets_due_summary(self, make_service, messenger):
        backend = ScriptedBackend()
        service = make_service(backend, summarize_interval=1)

        await service.handle_message(_inbound("anyone there?", chat_id=99))

        assert service.chat_log.messages_since_summary(99) == 0
        assert backend.requests == []
        assert messenger.texts == [NO_ACCESS_MESSAGE]


class GatedBackend:
    """Holds the first completion open until released and tracks overlap."""

    def __init__(self) -> None:
        self.requests = []
        self.active = 0
        self.max_active = 0
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def __call__(self, **request):
        self.requests.append(request)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.started.set()
        try:
            await self.release.wait()
        finally:
            self.active -= 1
        return completion(f"answer {len(self.requests)}")


class TestOverlappingMessages:
    """Messages admitted while an answer is pending for the same thread"""

    @pytest.mark.asyncio
    async def test_completions_are_serialized_and_answers_follow_their_turn(self, make_service, clock):
        backend = GatedBackend()
        service = make_service(backend)

        first = asyncio.create_task(service.handle_message(_inbound("first")))
        await backend.started.wait()
        clock.advance(2.5)
        second = asyncio.create_task(service.handle_message(_inbound("second", message_id=11)))
        for _ in range(5):
            await asyncio.sleep(0)

        assert len(backend.requests) == 1

        backend.release.set()
        answers = await asyncio.gather(first, second)

        assert answers == ["answer 1", "answer 2"]
        assert backend.max_active == 1
        turns = [(m["role"], m["content"]) for m in backend.requests[1]["messages"][1:]]
        assert turns == [("user", "first"), ("assistant", "answer 1"), ("user", "second")]
        history = [m.as_llm_message()["content"] for m in service.history.snapshot(str(ALLOWED_CHAT))]
        assert history == ["first", "answer 1", "second", "answer 2"]


class TestRollingHistory:
    """Answers are anchored to the user turn they reply to"""

    def test_insert_after_places_answer_next_to_its_turn(self):
        history = RollingHistory(limit=10)
        first = RollingMessage.text("user", "first")
        history.append("t", first)
        history.append("t", RollingMessage.text("user", "second"))

        history.insert_after("t", first, RollingMessage.text("assistant", "reply"))

        assert [m.as_llm_message()["content"] for m in history.snapshot("t")] == ["first", "reply", "second"]

    def test_insert_after_matches_the_exact_turn_not_an_equal_one(self):
        history = RollingHistory(limit=10)
        older = RollingMessage.text("user", "ok")
        newer = RollingMessage.text("user", "ok")
        history.append("t", older)
        history.append("t", RollingMessage.text("assistant", "sure"))
        history.append("t", newer)

        history.insert_after("t", newer, RollingMessage.text("assistant", "again"))

        assert [m.as_llm_message()["content"] for m in history.snapshot("t")] == ["ok", "sure", "ok", "again"]

    def test_full_thread_drops_oldest_before_inserting(self):
        history = RollingHistory(limit=3)
        anchor = RollingMessage.text("user", "b")
        history.append("t", RollingMessage.text("user", "a"))
        history.append("t", anchor)
        history.append("t", RollingMessage.text("user", "c"))

        history.insert_after("t", anchor, RollingMessage.text("assistant", "answer"))

        assert [m.as_llm_message()["content"] for m in history.snapshot("t")] == ["b", "answer", "c"]

    def test_missing_anchor_appends(self):
        history = RollingHistory(limit=3)
        history.append("t", RollingMessage.text("user", "a"))

        history.insert_after("t", RollingMessage.text("user", "gone"), RollingMessage.text("assistant", "late"))
        history.insert_after("other", RollingMessage.text("user", "x"), RollingMessage.text("assistant", "new"))

        assert [m.as_llm_message()["content"] for m in history.snapshot("t")] == ["a", "late"]
        assert [m.as_llm_message()["content"] for m in history.snapshot("other")] == ["new"]
