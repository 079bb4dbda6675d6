"""End-to-end behaviour of the orchestration loop with scripted model replies."""

import asyncio
import json
from types import SimpleNamespace

import pytest

from conftest import FakeSummarizer, ScriptedChannel, ScriptedLLM, RecordingSink, make_reply
from orchestrator import (
    FlowRegistry, FunctionTool, LLMStatusError, Orchestrator, RunAborted,
    ERROR, FINISHED, STEP_STARTED, THOUGHT, TOOL_CALL_FINISHED, TOOL_CALL_STARTED,
)
from orchestrator.models import KIND_CORRECTION, KIND_OBSERVATION


def _schema(required, **props):
    return {
        "type": "object",
        "properties": {name: {"type": t} for name, t in props.items()},
        "required": list(required),
    }


def _observation(message_content):
    assert message_content.startswith("Observation:\n")
    return json.loads(message_content[len("Observation:\n"):])


class Recorder:
    """Tool function that records each call."""

    def __init__(self, result="ok"):
        self.result = result
        self.calls = []

    def __call__(self, **kwargs):
        self.calls.append(kwargs)
        return self.result


def _orchestrator(llm, tools, **kwargs):
    kwargs.setdefault("require_confirmation", False)
    return Orchestrator(llm, tools, **kwargs)


def test_finish_without_confirmation_returns_output():
    llm = ScriptedLLM([make_reply("done", ("finish", {"output": "42"}))])
    orch = _orchestrator(llm, [])

    assert asyncio.run(orch.run("what is the answer")) == "42"
    assert len(llm.calls) == 1
    messages = llm.calls[0]["messages"]
    assert messages[0]["role"] == "system"
    assert "### finish:" in messages[0]["content"]
    assert messages[1] == {"role": "user", "content": "Your goal is: what is the answer"}


def test_missing_parameter_names_tool_and_parameter():
    read = Recorder()
    tool = FunctionTool("read_file", "Read a file", _schema(["path"], path="string"), read)
    llm = ScriptedLLM([
        make_reply("read it", ("read_file", {})),
        make_reply("give up", ("finish", {"output": "x"})),
    ])
    orch = _orchestrator(llm, [tool])

    asyncio.run(orch.run("read"))

    assert read.calls == []
    corrective = llm.calls[1]["messages"][-1]["content"]
    assert "'path'" in corrective
    assert "read_file" in corrective


def test_null_parameter_counts_as_present():
    read = Recorder()
    tool = FunctionTool("read_file", "Read a file", _schema(["path"], path="string"), read)
    llm = ScriptedLLM([
        make_reply("read it", ("read_file", {"path": None})),
        make_reply("done", ("finish", {"output": "x"})),
    ])
    asyncio.run(_orchestrator(llm, [tool]).run("read"))
    assert read.calls == [{"path": None}]


def test_malformed_reply_adds_one_corrective_message_and_runs_nothing():
    echo = Recorder()
    tool = FunctionTool("echo", "Echo", _schema([]), echo)
    sink = RecordingSink()
    llm = ScriptedLLM([
        "I think I should look around first.",
        make_reply("done", ("finish", {"output": "ok"})),
    ])
    orch = _orchestrator(llm, [tool], event_sink=sink)

    asyncio.run(orch.run("explore"))

    assert echo.calls == []
    first, second = llm.calls[0]["messages"], llm.calls[1]["messages"]
    assert len(second) == len(first) + 1
    corrective = second[-1]["content"]
    assert "could not be parsed" in corrective
    assert "I think I should look around first." in corrective
    errors = sink.of_type(ERROR)
    assert [e.data["kind"] for e in errors] == ["ResponseParseError"]


def test_parallel_calls_keep_order_when_one_fails():
    async def slow(**kwargs):
        await asyncio.sleep(0.05)
        return "A"

    def boom(**kwargs):
        raise ValueError("boom")

    tools = [
        FunctionTool("a", "slow", _schema([]), slow),
        FunctionTool("b", "fails", _schema([]), boom),
        FunctionTool("c", "fast", _schema([]), lambda **kw: "C"),
    ]
    llm = ScriptedLLM([
        make_reply("all at once", ("a", {}), ("b", {}), ("c", {}), parallel=True),
        make_reply("done", ("finish", {"output": "ok"})),
    ])
    sink = RecordingSink()
    orch = _orchestrator(llm, tools, event_sink=sink)

    asyncio.run(orch.run("fan out"))

    results = _observation(llm.calls[1]["messages"][-1]["content"])
    assert [r["tool"] for r in results] == ["a", "b", "c"]
    assert [r["success"] for r in results] == [True, False, True]
    assert results[0]["output"] == "A"
    assert "boom" in results[1]["error"]
    assert results[2]["output"] == "C"
    assert any(e.data.get("kind") == "ToolExecutionError" for e in sink.of_type(ERROR))


def test_parallel_flag_ignored_when_parallel_disallowed():
    order = []

    async def first(**kwargs):
        await asyncio.sleep(0.05)
        order.append("first")
        return 1

    async def second(**kwargs):
        order.append("second")
        return 2

    tools = [
        FunctionTool("first", "", _schema([]), first),
        FunctionTool("second", "", _schema([]), second),
    ]
    llm = ScriptedLLM([
        make_reply("both", ("first", {}), ("second", {}), parallel=True),
        make_reply("done", ("finish", {"output": "ok"})),
    ])
    asyncio.run(_orchestrator(llm, tools, allow_parallel=False).run("go"))
    assert order == ["first", "second"]


def test_confirmed_finish_returns_proposed_output():
    channel = ScriptedChannel(["yes"])
    llm = ScriptedLLM([make_reply("finished", ("finish", {"output": "done"}))])
    orch = Orchestrator(llm, [], confirmation_channel=channel)

    assert asyncio.run(orch.run("task")) == "done"
    assert len(channel.prompts) == 1
    assert "done" in channel.prompts[0]


def test_rejection_feedback_reaches_next_request_verbatim():
    channel = ScriptedChannel(["no, also check main.go", "yes"])
    llm = ScriptedLLM([
        make_reply("finished", ("finish", {"output": "first try"})),
        make_reply("now really", ("finish", {"output": "second try"})),
    ])
    orch = Orchestrator(llm, [], confirmation_channel=channel)

    assert asyncio.run(orch.run("task")) == "second try"
    assert "no, also check main.go" in llm.calls[1]["messages"][-1]["content"]


def test_finish_preempts_sibling_calls():
    echo = Recorder()
    channel = ScriptedChannel(["not yet"])
    llm = ScriptedLLM([
        make_reply("both", ("echo", {}), ("finish", {"output": "early"})),
        make_reply("done", ("finish", {"output": "late"})),
    ])
    orch = Orchestrator(llm, [FunctionTool("echo", "", _schema([]), echo)], confirmation_channel=channel)

    assert asyncio.run(orch.run("task")) == "late"
    assert echo.calls == []
    feedback = llm.calls[1]["messages"][-1]["content"]
    assert "not yet" in feedback
    assert "echo" in feedback


def test_max_steps_makes_exactly_that_many_requests():
    counter = {"n": 0}

    def tick(**kwargs):
        counter["n"] += 1
        return f"call {counter['n']}"

    llm = ScriptedLLM(default=make_reply("keep going", ("tick", {})))
    sink = RecordingSink()
    orch = _orchestrator(llm, [FunctionTool("tick", "", _schema([]), tick)], max_steps=3, event_sink=sink)

    output = asyncio.run(orch.run("never finish"))

    assert len(llm.calls) == 3
    assert output
    assert "call 3" in output
    assert "maximum of 3 steps" in output
    finished = sink.of_type(FINISHED)
    assert len(finished) == 1
    assert finished[0].data["reason"] == "max_steps"
    assert any(e.data.get("kind") == "MaxStepsExceeded" for e in sink.of_type(ERROR))


def test_llm_request_error_is_recovered():
    sink = RecordingSink()
    llm = ScriptedLLM([
        LLMStatusError("Rate exceeded", status_code=429, error_code="ThrottlingException"),
        make_reply("done", ("finish", {"output": "ok"})),
    ])
    orch = _orchestrator(llm, [], event_sink=sink)

    assert asyncio.run(orch.run("task")) == "ok"
    assert "previous model request failed" in llm.calls[1]["messages"][-1]["content"]
    assert sink.of_type(ERROR)[0].data["kind"] == "LLMStatusError"


def test_unexpected_error_aborts_run():
    llm = ScriptedLLM([RuntimeError("socket exploded")])
    sink = RecordingSink()
    orch = _orchestrator(llm, [], event_sink=sink)

    with pytest.raises(RunAborted):
        asyncio.run(orch.run("task"))
    assert sink.of_type(ERROR)[-1].data["kind"] == "RunAborted"

    # the instance is usable again after an aborted run
    llm.replies = [make_reply("done", ("finish", {"output": "again"}))]
    assert asyncio.run(orch.run("task")) == "again"


def test_empty_tool_calls_get_a_reminder():
    llm = ScriptedLLM([
        make_reply("hmm"),
        make_reply("done", ("finish", {"output": "ok"})),
    ])
    asyncio.run(_orchestrator(llm, []).run("task"))
    reminder = llm.calls[1]["messages"][-1]["content"]
    assert "did not call any tool" in reminder
    assert llm.calls[1]["messages"][-2]["role"] == "assistant"


def test_event_sequence_for_one_tool_step():
    sink = RecordingSink()
    llm = ScriptedLLM([
        make_reply("look", ("echo", {})),
        make_reply("done", ("finish", {"output": "ok"})),
    ])
    orch = _orchestrator(llm, [FunctionTool("echo", "", _schema([]), Recorder("hi"))], event_sink=sink)
    asyncio.run(orch.run("task"))

    types = [t for t in sink.types() if t != "llm_response"]
    assert types == [
        STEP_STARTED, THOUGHT, TOOL_CALL_STARTED, TOOL_CALL_FINISHED,
        STEP_STARTED, THOUGHT, FINISHED,
    ]


def test_async_sink_is_drained_before_run_returns():
    seen = []

    async def sink(event):
        await asyncio.sleep(0)
        seen.append(event.type)

    llm = ScriptedLLM([make_reply("done", ("finish", {"output": "ok"}))])
    asyncio.run(_orchestrator(llm, [], event_sink=sink).run("task"))
    assert FINISHED in seen


def test_failing_sink_does_not_break_the_run():
    def sink(event):
        raise RuntimeError("display gone")

    llm = ScriptedLLM([make_reply("done", ("finish", {"output": "ok"}))])
    assert asyncio.run(_orchestrator(llm, [], event_sink=sink).run("task")) == "ok"


def test_native_tool_calling_passes_tool_specs():
    class Result:
        content = ""
        thinking = None
        tool_uses = [{"name": "finish", "input": {"output": "native"}}]

    llm = ScriptedLLM([Result()])
    orch = _orchestrator(llm, [FunctionTool("echo", "Echo", _schema([]), Recorder())], native_tool_calling=True)

    assert asyncio.run(orch.run("task")) == "native"
    names = [t["name"] for t in llm.calls[0]["tools"]]
    assert names == ["echo", "finish"]
    assert "input_schema" in llm.calls[0]["tools"][0]


def test_unknown_flow_is_rejected_before_execution():
    flows = FlowRegistry({"lint": lambda params: "clean"})
    ran = Recorder()
    tool = FunctionTool("sub_flow", "Run a flow", _schema(["flow"], flow="string"), ran)
    llm = ScriptedLLM([
        make_reply("run", ("sub_flow", {"flow": "deploy"})),
        make_reply("done", ("finish", {"output": "ok"})),
    ])
    asyncio.run(_orchestrator(llm, [tool], flow_registry=flows).run("task"))

    assert ran.calls == []
    corrective = llm.calls[1]["messages"][-1]["content"]
    assert "deploy" in corrective
    assert "lint" in corrective


def test_history_is_compacted_before_each_request():
    big = "x" * 4000
    llm = ScriptedLLM([
        make_reply("one", ("dump", {})),
        make_reply("two", ("dump", {})),
        make_reply("done", ("finish", {"output": "ok"})),
    ])
    summarizer = FakeSummarizer()
    orch = _orchestrator(
        llm,
        [FunctionTool("dump", "", _schema([]), lambda **kw: big)],
        summarizer=summarizer,
        summarize_threshold=10_000,
        history_token_budget=1000,
    )
    asyncio.run(orch.run("task"))

    last = llm.calls[-1]["messages"]
    assert summarizer.inputs
    assert last[0]["role"] == "system"
    assert last[1]["content"] == "Your goal is: task"
    assert all(big not in m["content"] for m in last)


def test_concurrent_run_on_same_instance_is_refused():
    class SlowLLM:
        async def complete(self, messages, tools=None):
            await asyncio.sleep(0.05)
            return make_reply("done", ("finish", {"output": "ok"}))

    async def both(orch):
        first = asyncio.ensure_future(orch.run("a"))
        await asyncio.sleep(0)
        with pytest.raises(RuntimeError):
            await orch.run("b")
        return await first

    assert asyncio.run(both(_orchestrator(SlowLLM(), []))) == "ok"


def test_corrective_and_observation_kinds_in_state():
    llm = ScriptedLLM([
        "garbage",
        make_reply("look", ("echo", {})),
        make_reply("done", ("finish", {"output": "ok"})),
    ])
    orch = _orchestrator(llm, [FunctionTool("echo", "", _schema([]), Recorder())])
    conversation = []
    original_append = orch.history.append

    def spy(conv, message):
        conversation.append(message.kind)
        original_append(conv, message)

    orch.history.append = spy
    asyncio.run(orch.run("task"))
    assert KIND_CORRECTION in conversation
    assert KIND_OBSERVATION in conversation


@pytest.mark.parametrize("bad_reply", [
    {"choices": [{"message": {"tool_calls": ["x"]}}]},
    {"choices": [{"message": {"tool_calls": [{"function": "echo"}]}}]},
    SimpleNamespace(content="", thinking=None, tool_uses=[{"name": "echo", "input": "oops"}]),
])
def test_malformed_structured_reply_is_recovered(bad_reply):
    echo = Recorder()
    sink = RecordingSink()
    llm = ScriptedLLM([bad_reply, make_reply("done", ("finish", {"output": "ok"}))])
    orch = _orchestrator(llm, [FunctionTool("echo", "", _schema([]), echo)], event_sink=sink)

    assert asyncio.run(orch.run("task")) == "ok"
    assert echo.calls == []
    assert "could not be parsed" in llm.calls[1]["messages"][-1]["content"]
    assert [e.data["kind"] for e in sink.of_type(ERROR)] == ["ResponseParseError"]


def test_reminder_only_offers_registered_tools():
    llm = ScriptedLLM([make_reply("hmm"), make_reply("done", ("finish", {"output": "ok"}))])
    asyncio.run(_orchestrator(llm, [FunctionTool("echo", "", _schema([]), Recorder())]).run("task"))
    reminder = llm.calls[1]["messages"][-1]["content"]
    assert "user_input" not in reminder
    assert "echo" in reminder

    llm = ScriptedLLM([make_reply("hmm"), make_reply("done", ("finish", {"output": "ok"}))])
    ask_tool = FunctionTool("user_input", "", _schema(["prompt"], prompt="string"), Recorder())
    asyncio.run(_orchestrator(llm, [ask_tool]).run("task"))
    assert "'user_input'" in llm.calls[1]["messages"][-1]["content"]
