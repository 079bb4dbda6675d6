"""
Orchestrator package - autonomous agent loop.

Modules:
- models: conversation messages, tool definitions, tool calls and results
- errors: error taxonomy (recoverable kinds and RunAborted)
- events: AgentEvent types and the fire-and-forget emitter
- parser: model reply -> thought + tool calls
- registry: tool registry, flow registry and call validation
- execution: sequential / parallel tool execution
- history: conversation seeding and compaction, LLM summarizer
- confirmation: human approval gate before finishing
- prompts: system prompt and corrective message text
- core: the Orchestrator step loop
"""

from .core import Orchestrator, RunState, DEFAULT_MAX_STEPS
from .confirmation import ConfirmationGate, ConfirmationDecision, is_affirmative
from .errors import (
    AgentError,
    LLMRequestError,
    LLMTransportError,
    LLMStatusError,
    LLMPayloadError,
    ResponseParseError,
    ToolValidationError,
    ToolExecutionError,
    MaxStepsExceeded,
    RunAborted,
)
from .events import (
    AgentEvent,
    EventEmitter,
    STEP_STARTED,
    THOUGHT,
    TOOL_CALL_STARTED,
    TOOL_CALL_FINISHED,
    ERROR,
    FINISHED,
    LLM_RESPONSE,
    EVENT_TYPES,
)
from .execution import ToolExecutor
from .history import HistoryManager, LLMSummarizer
from .models import Message, ToolCall, ToolDefinition, ToolResult, ParsedResponse
from .parser import parse_response
from .registry import (
    ToolHandler,
    FunctionTool,
    ToolRegistry,
    FlowRegistry,
    FINISH_TOOL_NAME,
    FLOW_TOOL_NAMES,
)

__all__ = [
    # Main class
    "Orchestrator",
    "RunState",
    "DEFAULT_MAX_STEPS",

    # Components
    "ConfirmationGate",
    "ConfirmationDecision",
    "is_affirmative",
    "ToolExecutor",
    "HistoryManager",
    "LLMSummarizer",
    "ToolRegistry",
    "FlowRegistry",
    "ToolHandler",
    "FunctionTool",
    "parse_response",

    # Data types
    "AgentEvent",
    "EventEmitter",
    "Message",
    "ToolCall",
    "ToolDefinition",
    "ToolResult",
    "ParsedResponse",
    "FINISH_TOOL_NAME",
    "FLOW_TOOL_NAMES",

    # Event types
    "STEP_STARTED",
    "THOUGHT",
    "TOOL_CALL_STARTED",
    "TOOL_CALL_FINISHED",
    "ERROR",
    "FINISHED",
    "LLM_RESPONSE",
    "EVENT_TYPES",

    # Errors
    "AgentError",
    "LLMRequestError",
    "LLMTransportError",
    "LLMStatusError",
    "LLMPayloadError",
    "ResponseParseError",
    "ToolValidationError",
    "ToolExecutionError",
    "MaxStepsExceeded",
    "RunAborted",
]
