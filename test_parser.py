"""Parsing of model replies into thought + tool calls."""

import json
from types import SimpleNamespace

import pytest

from orchestrator import ResponseParseError, parse_response
from orchestrator.parser import response_text


def test_plain_json_reply():
    parsed = parse_response(json.dumps({
        "thought": "list first",
        "tool_calls": [{"tool": "list_directory", "parameters": {"path": "."}}],
    }))
    assert parsed.thought == "list first"
    assert [(tc.tool, tc.parameters) for tc in parsed.tool_calls] == [("list_directory", {"path": "."})]
    assert parsed.parallel is False


def test_json_wrapped_in_prose_and_fences():
    text = 'Sure! Here is my answer:\n```json\n{"thought": "x", "tool_calls": [], "parallel": true}\n```\nThanks.'
    parsed = parse_response(text)
    assert parsed.thought == "x"
    assert parsed.tool_calls == []
    assert parsed.parallel is True


def test_missing_parameters_become_empty_dict():
    parsed = parse_response('{"thought": "t", "tool_calls": [{"tool": "finish"}]}')
    assert parsed.tool_calls[0].parameters == {}


def test_structured_thought_is_kept():
    parsed = parse_response('{"thought": {"plan": ["a", "b"]}, "tool_calls": []}')
    assert parsed.thought == {"plan": ["a", "b"]}
    assert json.loads(parsed.thought_text) == {"plan": ["a", "b"]}


@pytest.mark.parametrize("text", [
    "no json here",
    "{not valid json}",
    "[1, 2, 3]",
    '{"tool_calls": []}',
    '{"thought": "t", "tool_calls": "finish"}',
    '{"thought": "t", "tool_calls": [{"parameters": {}}]}',
    '{"thought": "t", "tool_calls": [{"tool": "x", "parameters": [1]}]}',
    '{"thought": "t", "tool_calls": ["finish"]}',
])
def test_invalid_replies_raise(text):
    with pytest.raises(ResponseParseError) as exc:
        parse_response(text)
    assert exc.value.raw == text


def test_openai_tool_calls():
    payload = {
        "choices": [{
            "message": {
                "content": None,
                "reasoning_content": "need the file",
                "tool_calls": [
                    {"function": {"name": "read_file", "arguments": '{"path": "a.txt"}'}},
                ],
            }
        }]
    }
    parsed = parse_response(payload)
    assert parsed.thought == "need the file"
    assert parsed.tool_calls[0].tool == "read_file"
    assert parsed.tool_calls[0].parameters == {"path": "a.txt"}


def test_openai_bad_arguments_raise():
    payload = {"choices": [{"message": {"tool_calls": [{"function": {"name": "x", "arguments": "{oops"}}]}}]}
    with pytest.raises(ResponseParseError):
        parse_response(payload)


def test_openai_text_only_is_parsed_as_string():
    payload = {"choices": [{"message": {"content": '{"thought": "hi", "tool_calls": []}'}}]}
    assert parse_response(payload).thought == "hi"


def test_bedrock_tool_use_blocks():
    result = SimpleNamespace(
        content="",
        thinking=SimpleNamespace(thinking="checking"),
        tool_uses=[SimpleNamespace(name="shell_command", input={"command": "ls"})],
    )
    parsed = parse_response(result)
    assert parsed.thought == "checking"
    assert parsed.tool_calls[0].tool == "shell_command"
    assert parsed.tool_calls[0].parameters == {"command": "ls"}


def test_tool_use_without_reasoning_gets_synthetic_thought():
    result = SimpleNamespace(content="", thinking=None, tool_uses=[{"name": "a", "input": {}}, {"name": "b", "input": None}])
    parsed = parse_response(result)
    assert parsed.thought == "Calling tool(s): a, b"
    assert parsed.tool_calls[1].parameters == {}


def test_bedrock_text_only_is_parsed_as_string():
    result = SimpleNamespace(content='{"thought": "t", "tool_calls": []}', thinking=None, tool_uses=[])
    assert parse_response(result).thought == "t"


def test_unrecognized_payload_raises():
    with pytest.raises(ResponseParseError):
        parse_response(12345)


def test_response_text():
    assert response_text("plain") == "plain"
    assert response_text(SimpleNamespace(content="from bedrock")) == "from bedrock"
    assert response_text({"choices": [{"message": {"content": "from openai"}}]}) == "from openai"


def test_parallel_must_be_a_real_boolean():
    assert parse_response('{"thought": "t", "tool_calls": [], "parallel": "false"}').parallel is False
    assert parse_response('{"thought": "t", "tool_calls": [], "parallel": 1}').parallel is False
    assert parse_response('{"thought": "t", "tool_calls": [], "parallel": true}').parallel is True


@pytest.mark.parametrize("payload", [
    SimpleNamespace(content="", thinking=None, tool_uses=[{"name": "a", "input": "oops"}]),
    SimpleNamespace(content="", thinking=None, tool_uses=[SimpleNamespace(name="a", input=[1, 2])]),
    SimpleNamespace(content="", thinking=None, tool_uses=7),
    {"choices": [{"message": {"tool_calls": ["x"]}}]},
    {"choices": [{"message": {"tool_calls": [{"function": "read_file"}]}}]},
    {"choices": [{"message": {"tool_calls": {"function": {"name": "a"}}}}]},
    {"choices": [{"message": {"tool_calls": [{"function": {"name": "a", "arguments": "[1]"}}]}}]},
])
def test_malformed_structured_calls_raise_parse_error(payload):
    with pytest.raises(ResponseParseError) as exc:
        parse_response(payload)
    assert exc.value.raw is payload
