"""
Prompt text: the system prompt built from the registered tools, the
phase-framing instruction, and the corrective messages the loop injects.
"""

import json
from typing import Iterable, List

from .models import ParsedResponse, ToolDefinition, ToolResult

_MOD_IDENTITY = (
    "You are a helpful autonomous assistant. Your primary goal is to accomplish the "
    "user's goal by executing tasks with the available tools. Once you have completed "
    "the task or gathered the necessary information, call the 'finish' tool with the "
    "final answer or a summary of your findings."
)

_MOD_RESPONSE_FORMAT = """CRITICAL: Your response MUST be a single JSON object with "thought" and "tool_calls". Do not write prose, code, or any other text outside of the JSON structure.

Set "parallel": true only when the tool calls are independent of each other and may run at the same time.

Example response for a tool call:
{
  "thought": "I need to see what files exist first.",
  "tool_calls": [
    {"tool": "list_directory", "parameters": {"path": "."}}
  ],
  "parallel": false
}

Example response for a final answer:
{
  "thought": "I have completed the task.",
  "tool_calls": [
    {"tool": "finish", "parameters": {"output": "The answer to your question is..."}}
  ]
}"""

PHASE_INSTRUCTION = (
    "Start by thinking about what you need to find out or do first, then call the tools "
    "that make progress toward the goal. Work step by step and use the observations you "
    "receive. When the goal is complete, call 'finish'."
)


def compose_system_prompt(definitions: Iterable[ToolDefinition]) -> str:
    tool_block = "\n".join(d.to_prompt() for d in definitions)
    return (
        f"{_MOD_IDENTITY}\n\n"
        f"Available Tools:\n{tool_block}\n\n"
        f"{_MOD_RESPONSE_FORMAT}\n\n"
        "When you have completed the task, use the 'finish' tool."
    )


def format_assistant_turn(parsed: ParsedResponse) -> str:
    return parsed.to_json()


def format_llm_failure(error: Exception) -> str:
    return (
        f"[SYSTEM] The previous model request failed: {error}. "
        "Continue with the task and respond with a single JSON object."
    )


def format_parse_failure(error: Exception, raw: str) -> str:
    return (
        f"[SYSTEM] Your previous response could not be parsed: {error}\n\n"
        f"Your response was:\n{raw}\n\n"
        'Respond ONLY with a single JSON object of the form '
        '{"thought": "...", "tool_calls": [{"tool": "...", "parameters": {...}}]}.'
    )


def format_validation_failure(violations: List[str]) -> str:
    lines = "\n".join(f"- {v}" for v in violations)
    return (
        "[SYSTEM] None of your tool calls were executed because some of them are invalid:\n"
        f"{lines}\n\n"
        "Fix these problems and send the corrected tool calls."
    )


def format_empty_calls_reminder(tool_names: Iterable[str]) -> str:
    names = list(tool_names)
    options = ["call a tool to make progress"]
    if "user_input" in names:
        options.append("call 'user_input' if you need information from the user")
    options.append("call 'finish' if the goal is complete")
    return (
        "[SYSTEM] You did not call any tool. Either "
        + ", ".join(options[:-1]) + ", or " + options[-1] + ".\n"
        "Available tools: " + ", ".join(names)
    )


def format_rejection(feedback: str, skipped: List[str]) -> str:
    text = (
        "The user did not accept your final output. Their response, which may contain "
        f"new instructions, is:\n\n{feedback}\n\n"
        "Address this before calling 'finish' again."
    )
    if skipped:
        text += (
            "\n\nThese tool calls from your previous response were not executed: "
            + ", ".join(skipped)
        )
    return text


def format_observation(results: List[ToolResult]) -> str:
    return "Observation:\n" + json.dumps([r.to_dict() for r in results], indent=2, default=str)


def synthesize_final_output(max_steps: int, last_observation: str) -> str:
    if last_observation:
        return (
            f"Stopped after reaching the maximum of {max_steps} steps without finishing.\n\n"
            f"Last {last_observation}"
        )
    return (
        f"Stopped after reaching the maximum of {max_steps} steps without finishing. "
        "No tool observations were recorded."
    )
