"""
Data types that flow through the orchestration loop: conversation messages,
tool definitions, tool calls, tool results and parsed model replies.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# Message kinds. Only "observation" entries are summarized during compaction;
# "system" and "goal" form the protected floor.
KIND_SYSTEM = "system"
KIND_GOAL = "goal"
KIND_PHASE = "phase"
KIND_ASSISTANT = "assistant"
KIND_OBSERVATION = "observation"
KIND_CORRECTION = "correction"
KIND_REMINDER = "reminder"
KIND_FEEDBACK = "feedback"
KIND_SUMMARY = "summary"


@dataclass
class Message:
    """One entry of the conversation history"""
    role: str  # system | user | assistant
    content: str
    kind: str = KIND_ASSISTANT

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class ToolDefinition:
    """Name, description and JSON-schema-like parameter spec of a tool"""
    name: str
    description: str
    parameters: Dict[str, Any] = field(default_factory=dict)

    @property
    def required(self) -> List[str]:
        return list(self.parameters.get("required", []) or [])

    def to_prompt(self) -> str:
        return f"### {self.name}: {self.description}\nParameters: {json.dumps(self.parameters)}"

    def to_api_spec(self) -> Dict[str, Any]:
        """Anthropic Messages API tool spec (used for native tool calling)."""
        schema = dict(self.parameters) if self.parameters else {}
        schema.setdefault("type", "object")
        schema.setdefault("properties", {})
        return {"name": self.name, "description": self.description, "input_schema": schema}


@dataclass
class ToolCall:
    """A tool invocation proposed by the model (not yet validated)"""
    tool: str
    parameters: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"tool": self.tool, "parameters": self.parameters}


@dataclass
class ToolResult:
    """Outcome of executing one ToolCall"""
    tool: str
    parameters: Dict[str, Any]
    success: bool
    output: Any = None
    error: Optional[str] = None
    warning: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"tool": self.tool, "parameters": self.parameters, "success": self.success}
        if self.success:
            d["output"] = self.output
        else:
            d["error"] = self.error
        if self.warning:
            d["warning"] = self.warning
        return d


@dataclass
class ParsedResponse:
    """Normalized model decision"""
    thought: Any
    tool_calls: List[ToolCall] = field(default_factory=list)
    parallel: bool = False

    @property
    def thought_text(self) -> str:
        if isinstance(self.thought, str):
            return self.thought
        return json.dumps(self.thought, default=str)

    def to_json(self) -> str:
        return json.dumps({
            "thought": self.thought,
            "tool_calls": [tc.to_dict() for tc in self.tool_calls],
            "parallel": self.parallel,
        }, default=str)
