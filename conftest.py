"""Shared fakes for the test suite."""

import json

import pytest


class ScriptedLLM:
    """LLM client that replays a fixed list of replies.

    Exceptions in the list are raised instead of returned. When the script
    runs out, `default` is returned (or an AssertionError raised if unset).
    """

    def __init__(self, replies=None, default=None):
        self.replies = list(replies or [])
        self.default = default
        self.calls = []

    async def complete(self, messages, tools=None):
        self.calls.append({"messages": [dict(m) for m in messages], "tools": tools})
        if self.replies:
            reply = self.replies.pop(0)
        elif self.default is not None:
            reply = self.default
        else:
            raise AssertionError("ScriptedLLM ran out of replies")
        if isinstance(reply, Exception):
            raise reply
        return reply


class ScriptedChannel:
    """Human channel answering from a list; records every prompt shown."""

    def __init__(self, answers=None):
        self.answers = list(answers or [])
        self.prompts = []

    def __call__(self, text):
        self.prompts.append(text)
        return self.answers.pop(0) if self.answers else "yes"


class RecordingSink:
    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    def types(self):
        return [e.type for e in self.events]

    def of_type(self, event_type):
        return [e for e in self.events if e.type == event_type]


class FakeSummarizer:
    def __init__(self, text="short summary", fail=False):
        self.text = text
        self.fail = fail
        self.inputs = []

    async def summarize(self, text):
        self.inputs.append(text)
        if self.fail:
            raise RuntimeError("summarizer unavailable")
        return self.text


def make_reply(thought, *calls, parallel=False):
    """JSON reply in the format the system prompt asks for. calls are (tool, params) pairs."""
    return json.dumps({
        "thought": thought,
        "tool_calls": [{"tool": t, "parameters": p} for t, p in calls],
        "parallel": parallel,
    })


@pytest.fixture
def reply():
    return make_reply


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def channel():
    return ScriptedChannel()
