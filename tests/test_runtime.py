"""Tests for the bounded tool-calling loop."""

import pytest

from fakes import ScriptedBackend, completion, tool_call
from skye.agents.assistant import AssistantRuntime, AssistantTurn, ToolOutcome, Transcript, reduce_transcript
from skye.services.memory import MemoryStore

MESSAGES = [{"role": "system", "content": "SYS"}, {"role": "user", "content": "hi"}]


@pytest.fixture
def store(tmp_path) -> MemoryStore:
    return MemoryStore(tmp_path / "memories.json")


class TestAssistantRuntime:
    @pytest.mark.asyncio
    async def test_plain_answer_in_one_request(self, store):
        backend = ScriptedBackend(completion("  Hello there!  "))
        runtime = AssistantRuntime(store, model="test/model", completion_fn=backend)

        result = await runtime.run(1, MESSAGES)

        assert result.success is True
        assert result.response == "Hello there!"
        assert result.requests == 1
        assert backend.requests[0]["tools"][0]["function"]["name"] == "save_memory"

    @pytest.mark.asyncio
    async def test_tool_call_executes_and_loops(self, store):
        backend = ScriptedBackend(
            completion(tool_calls=[tool_call("save_memory", '{"content": "Likes blue"}')]),
            completion("Noted!"),
        )
        runtime = AssistantRuntime(store, model="test/model", completion_fn=backend)

        result = await runtime.run(1, MESSAGES)

        assert result.response == "Noted!"
        assert result.tool_names == ["save_memory"]
        assert [entry.content for entry in store.list(1)] == ["Likes blue"]

        follow_up = backend.requests[1]["messages"]
        assert follow_up[-2]["role"] == "assistant"
        assert follow_up[-2]["tool_calls"][0]["id"] == "call_1"
        assert follow_up[-1] == {
            "role": "tool",
            "tool_call_id": "call_1",
            "content": f"Memory saved with ID {store.list(1)[0].id}.",
        }

    @pytest.mark.asyncio
    async def test_loop_is_capped_after_five_tool_rounds(self, store):
        backend = ScriptedBackend(
            completion(tool_calls=[tool_call("delete_memory", '{"memory_id": "mem_x"}')]),
            repeat_last=True,
        )
        runtime = AssistantRuntime(store, model="test/model", completion_fn=backend)

        result = await runtime.run(1, MESSAGES)

        assert len(backend.requests) == 6
        assert result.requests == 6
        assert result.success is True
        assert result.response == ""

    @pytest.mark.asyncio
    async def test_invalid_tool_arguments_are_reported_to_model(self, store):
        backend = ScriptedBackend(
            completion(tool_calls=[tool_call("save_memory", "{broken")]),
            completion("Sorry about that."),
        )
        runtime = AssistantRuntime(store, model="test/model", completion_fn=backend)

        result = await runtime.run(1, MESSAGES)

        assert result.response == "Sorry about that."
        assert backend.requests[1]["messages"][-1]["content"].startswith("Error: invalid json")
        assert store.list(1) == []

    @pytest.mark.asyncio
    async def test_backend_failure_becomes_failed_result(self, store):
        runtime = AssistantRuntime(store, model="m", completion_fn=ScriptedBackend(RuntimeError("down")))

        result = await runtime.run(1, MESSAGES)

        assert result.success is False
        assert result.response == ""
        assert result.error == "down"

    @pytest.mark.asyncio
    async def test_streaming_reports_cumulative_text(self, store):
        async def stream_fn(**request):
            for piece in ("Hel", "lo", "!"):
                yield {"choices": [{"delta": {"content": piece}}]}

        seen = []

        async def on_delta(text):
            seen.append(text)

        runtime = AssistantRuntime(store, model="m", completion_fn=ScriptedBackend(), stream_fn=stream_fn)

        result = await runtime.run(1, MESSAGES, on_delta=on_delta)

        assert result.response == "Hello!"
        assert seen == ["Hel", "Hello", "Hello!"]


class TestTranscript:
    def test_reducer_never_mutates_input(self):
        base = Transcript(({"role": "user", "content": "hi"},))

        with_turn = reduce_transcript(base, AssistantTurn({"content": None, "tool_calls": [{"id": "a"}]}))
        with_tool = reduce_transcript(with_turn, ToolOutcome(tool_call_id="a", content="done"))

        assert len(base.messages) == 1
        assert with_turn.messages[-1] == {"role": "assistant", "content": "", "tool_calls": [{"id": "a"}]}
        assert with_tool.messages[-1] == {"role": "tool", "tool_call_id": "a", "content": "done"}
