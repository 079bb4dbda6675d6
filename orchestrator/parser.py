"""
Response parsing: turns a model reply into a ParsedResponse.

Parse attempts run in a fixed order:
1. structured payload carrying tool invocations (Bedrock tool_use blocks or
   OpenAI-style choices[0].message.tool_calls)
2. structured payload carrying only text -> string parsing of that text
3. string: slice from the first "{" to the last "}" and decode it as
   {"thought": ..., "tool_calls": [...], "parallel": bool}
Anything else raises ResponseParseError. No retries happen here.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from .errors import ResponseParseError
from .models import ParsedResponse, ToolCall

logger = logging.getLogger(__name__)


def parse_response(payload: Any) -> ParsedResponse:
    """Normalize a raw string or structured completion into a ParsedResponse."""
    if isinstance(payload, str):
        return _parse_text(payload)

    calls = _structured_tool_calls(payload)
    if calls:
        thought = _structured_reasoning(payload) or _structured_text(payload)
        if not thought:
            thought = "Calling tool(s): " + ", ".join(tc.tool for tc in calls)
        return ParsedResponse(thought=thought, tool_calls=calls, parallel=False)

    text = _structured_text(payload)
    if text is not None:
        return _parse_text(text)

    raise ResponseParseError(
        f"Unrecognized model response of type {type(payload).__name__}", raw=payload
    )


def response_text(payload: Any) -> str:
    """Best-effort plain text of a completion (used by the summarizer)."""
    if isinstance(payload, str):
        return payload
    text = _structured_text(payload)
    if text is not None:
        return text
    return json.dumps(payload, default=str)


def _parse_text(text: str) -> ParsedResponse:
    first = text.find("{")
    last = text.rfind("}")
    if first == -1 or last <= first:
        raise ResponseParseError("Response does not contain a JSON object", raw=text)

    try:
        obj = json.loads(text[first:last + 1])
    except json.JSONDecodeError as e:
        raise ResponseParseError(f"Invalid JSON: {e}", raw=text)

    if not isinstance(obj, dict):
        raise ResponseParseError("Response JSON must be an object", raw=text)
    if "thought" not in obj:
        raise ResponseParseError("Response JSON is missing 'thought'", raw=text)
    raw_calls = obj.get("tool_calls")
    if not isinstance(raw_calls, list):
        raise ResponseParseError("'tool_calls' must be a list", raw=text)

    calls = []
    for i, entry in enumerate(raw_calls):
        if not isinstance(entry, dict):
            raise ResponseParseError(f"tool_calls[{i}] must be an object", raw=text)
        name = entry.get("tool")
        if not isinstance(name, str) or not name:
            raise ResponseParseError(f"tool_calls[{i}] is missing a 'tool' name", raw=text)
        params = entry.get("parameters")
        if params is None:
            params = {}
        if not isinstance(params, dict):
            raise ResponseParseError(f"tool_calls[{i}].parameters must be an object", raw=text)
        calls.append(ToolCall(tool=name, parameters=params))

    return ParsedResponse(thought=obj["thought"], tool_calls=calls, parallel=obj.get("parallel") is True)


# ---------------------------------------------------------------------------
# Structured payload helpers
# ---------------------------------------------------------------------------

def _openai_message(payload: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    message = first.get("message")
    return message if isinstance(message, dict) else None


def _structured_tool_calls(payload: Any) -> List[ToolCall]:
    # Bedrock GenerationResult (or anything shaped like it)
    tool_uses = getattr(payload, "tool_uses", None)
    if tool_uses:
        if not isinstance(tool_uses, (list, tuple)):
            raise ResponseParseError("tool_uses must be a list", raw=payload)
        calls = []
        for i, tu in enumerate(tool_uses):
            if isinstance(tu, dict):
                name, inp = tu.get("name"), tu.get("input")
            else:
                name, inp = getattr(tu, "name", None), getattr(tu, "input", None)
            if not isinstance(name, str) or not name:
                raise ResponseParseError(f"tool_use[{i}] has no name", raw=payload)
            if inp is None:
                inp = {}
            if not isinstance(inp, dict):
                raise ResponseParseError(f"tool_use[{i}] input for {name} must be an object", raw=payload)
            calls.append(ToolCall(tool=name, parameters=dict(inp)))
        return calls

    message = _openai_message(payload)
    if not message or not message.get("tool_calls"):
        return []
    if not isinstance(message["tool_calls"], list):
        raise ResponseParseError("message.tool_calls must be a list", raw=payload)
    calls = []
    for i, tc in enumerate(message["tool_calls"]):
        if not isinstance(tc, dict):
            raise ResponseParseError(f"tool_calls[{i}] must be an object", raw=payload)
        fn = tc.get("function")
        if not isinstance(fn, dict):
            raise ResponseParseError(f"tool_calls[{i}].function must be an object", raw=payload)
        name = fn.get("name")
        if not isinstance(name, str) or not name:
            raise ResponseParseError(f"tool_calls[{i}] function has no name", raw=payload)
        args = fn.get("arguments") or "{}"
        if isinstance(args, str):
            try:
                args = json.loads(args)
            except json.JSONDecodeError as e:
                raise ResponseParseError(f"Invalid arguments for {name}: {e}", raw=payload)
        if not isinstance(args, dict):
            raise ResponseParseError(f"Arguments for {name} must be an object", raw=payload)
        calls.append(ToolCall(tool=name, parameters=args))
    return calls


def _structured_reasoning(payload: Any) -> str:
    thinking = getattr(payload, "thinking", None)
    if thinking is not None:
        text = getattr(thinking, "thinking", thinking)
        if isinstance(text, str) and text.strip():
            return text
    message = _openai_message(payload)
    if message:
        reasoning = message.get("reasoning_content")
        if isinstance(reasoning, str) and reasoning.strip():
            return reasoning
    return ""


def _structured_text(payload: Any) -> Optional[str]:
    content = getattr(payload, "content", None)
    if isinstance(content, str) and not isinstance(payload, dict):
        return content
    message = _openai_message(payload)
    if message and isinstance(message.get("content"), str):
        return message["content"]
    return None
