"""Tests for the chat log, rolling summaries and the summarizer."""

import asyncio

import pytest

from fakes import ScriptedBackend, completion
from skye.services.conversation import ChatLog, LogEntry, LogEntryType, SummaryStore, format_log_entry
from skye.services.conversation.summarization import ChatSummarizer, SummarizationScheduler


def _entry(index: int, sender: str = "Ana") -> LogEntry:
    return LogEntry(sender=sender, timestamp=f"10:{index:02d}", type=LogEntryType.TEXT, content=f"message {index}")


def _fill(log: ChatLog, chat_id: int, count: int) -> bool:
    due = False
    for index in range(count):
        due = log.log_message(chat_id, _entry(index), "Book Club")
    return due


class TestChatLog:
    """Buffer bounds, recent window and summarization counter"""

    def test_older_entries_exclude_recent_window(self, tmp_path):
        log = ChatLog(SummaryStore(tmp_path / "s.json"))
        _fill(log, 1, 25)

        older = log.get_older_entries(1)

        assert len(older) == 5
        assert [entry.content for entry in older] == [f"message {i}" for i in range(5)]

    def test_buffer_drops_oldest_past_capacity(self, tmp_path):
        log = ChatLog(SummaryStore(tmp_path / "s.json"))
        _fill(log, 1, 60)

        entries = log.entries(1)
        assert len(entries) == 50
        assert entries[0].content == "message 10"

    def test_due_every_interval(self, tmp_path):
        log = ChatLog(SummaryStore(tmp_path / "s.json"))

        assert _fill(log, 1, 9) is False
        assert log.log_message(1, _entry(9)) is True
        assert log.messages_since_summary(1) == 10

    def test_chat_context_renders_recent_log(self, tmp_path):
        log = ChatLog(SummaryStore(tmp_path / "s.json"))
        log.log_message(1, _entry(1), "Book Club")
        log.log_message(
            1,
            LogEntry(sender="Ben", timestamp="10:02", type=LogEntryType.IMAGE, content="(photo)", reply_to="Ana"),
        )

        context = log.get_chat_context(1)

        assert context.chat_title == "Book Club"
        assert context.summary == ""
        assert context.recent_log.splitlines() == [
            "[10:01] Ana: message 1",
            "[10:02] Ben (replying to Ana): [image] (photo)",
        ]

    def test_empty_chat_has_no_context(self, tmp_path):
        log = ChatLog(SummaryStore(tmp_path / "s.json"))

        assert log.get_chat_context(42) is None

    @pytest.mark.asyncio
    async def test_summary_survives_restart_and_counter_reset_keeps_it(self, tmp_path):
        path = tmp_path / "s.json"
        await ChatLog(SummaryStore(path)).set_summary(1, "They planned a trip.")

        log = ChatLog(SummaryStore(path))
        _fill(log, 1, 3)
        log.reset_counter(1)

        assert log.messages_since_summary(1) == 0
        assert log.get_summary(1) == "They planned a trip."
        assert log.get_chat_context(1).summary == "They planned a trip."
        assert log.get_summary(2) == ""

    def test_format_marks_non_text_entries(self):
        entry = LogEntry(sender="Cy", timestamp="t", type=LogEntryType.OTHER, content="(sticker)")

        assert format_log_entry(entry) == "[t] Cy: [other] (sticker)"


class TestChatSummarizer:
    """Counter resets on every outcome; summaries persist"""

    @pytest.mark.asyncio
    async def test_success_stores_summary_and_resets_counter(self, tmp_path):
        path = tmp_path / "summaries.json"
        log = ChatLog(SummaryStore(path))
        _fill(log, 1, 25)
        backend = ScriptedBackend(completion("Ana posted five messages about books."))
        summarizer = ChatSummarizer(log, model="test/model", completion_fn=backend)

        assert await summarizer.summarize_chat(1) is True

        assert log.messages_since_summary(1) == 0
        assert log.get_summary(1) == "Ana posted five messages about books."
        assert SummaryStore(path).get(1) == "Ana posted five messages about books."
        request = backend.requests[0]
        assert "under 200 words" in request["system"]
        assert request["messages"][0]["content"].count("\n") == 4

    @pytest.mark.asyncio
    async def test_failure_resets_counter_without_summary(self, tmp_path):
        log = ChatLog(SummaryStore(tmp_path / "s.json"))
        _fill(log, 1, 25)
        summarizer = ChatSummarizer(log, model="m", completion_fn=ScriptedBackend(RuntimeError("boom")))

        assert await summarizer.summarize_chat(1) is False

        assert log.messages_since_summary(1) == 0
        assert log.get_summary(1) == ""

    @pytest.mark.asyncio
    async def test_empty_content_counts_as_failure(self, tmp_path):
        log = ChatLog(SummaryStore(tmp_path / "s.json"))
        _fill(log, 1, 25)
        summarizer = ChatSummarizer(log, model="m", completion_fn=ScriptedBackend(completion("   ")))

        assert await summarizer.summarize_chat(1) is False
        assert log.messages_since_summary(1) == 0

    @pytest.mark.asyncio
    async def test_nothing_older_than_recent_window(self, tmp_path):
        log = ChatLog(SummaryStore(tmp_path / "s.json"))
        _fill(log, 1, 12)
        backend = ScriptedBackend()
        summarizer = ChatSummarizer(log, model="m", completion_fn=backend)

        assert await summarizer.summarize_chat(1) is False
        assert backend.requests == []
        assert log.messages_since_summary(1) == 0


class TestSummarizationScheduler:
    """At most one background pass per chat"""

    @pytest.mark.asyncio
    async def test_schedule_deduplicates_per_chat(self, tmp_path):
        log = ChatLog(SummaryStore(tmp_path / "s.json"))
        _fill(log, 1, 25)
        gate = asyncio.Event()

        async def slow_backend(**request):
            await gate.wait()
            return completion("summary")

        scheduler = SummarizationScheduler(ChatSummarizer(log, model="m", completion_fn=slow_backend))

        assert scheduler.schedule(1) is True
        assert scheduler.schedule(1) is False
        assert scheduler.is_running(1)

        gate.set()
        await scheduler.wait_idle()

        assert not scheduler.is_running(1)
        assert log.get_summary(1) == "summary"
