"""
Tool registry and call validation.

The registry is a fixed mapping from tool name to handler, closed over when the
orchestrator is constructed. validate() is pure: it only inspects the call
against the registered schemas and never runs a tool.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Union

from .models import ToolCall, ToolDefinition

logger = logging.getLogger(__name__)

FINISH_TOOL_NAME = "finish"
# Tools that run a named sub-workflow from the flow registry
FLOW_TOOL_NAMES = frozenset({"sub_flow", "iterator"})

FINISH_DEFINITION = ToolDefinition(
    name=FINISH_TOOL_NAME,
    description="Finish the task and hand the final answer to the user. Use only when the goal is complete.",
    parameters={
        "type": "object",
        "properties": {
            "output": {"type": "string", "description": "The final answer or summary of the work done"},
        },
        "required": ["output"],
    },
)


class ToolHandler:
    """A named, schema-described capability the model can invoke.

    Subclasses set name/description/parameters and implement execute(), which
    may be sync or async and raises on failure. prepare() runs first and
    raises TypeError when the arguments cannot be used.
    """

    name: str = ""
    description: str = ""
    parameters: Optional[Dict[str, Any]] = None

    def definition(self) -> ToolDefinition:
        return ToolDefinition(name=self.name, description=self.description, parameters=dict(self.parameters or {}))

    def prepare(self, parameters: Dict[str, Any]) -> Dict[str, Any]:
        return dict(parameters)

    def execute(self, parameters: Dict[str, Any]) -> Any:
        raise NotImplementedError


class FunctionTool(ToolHandler):
    """Adapts a plain (sync or async) callable taking keyword arguments.

    Arguments the callable does not accept are dropped, so an extra optional
    field invented by the model does not fail the call.
    """

    def __init__(self, name: str, description: str, parameters: Dict[str, Any], fn: Callable[..., Any]):
        self.name = name
        self.description = description
        self.parameters = parameters
        self._fn = fn
        self._signature = inspect.signature(fn)

    @property
    def is_async(self) -> bool:
        return inspect.iscoroutinefunction(self._fn)

    def prepare(self, parameters: Dict[str, Any]) -> Dict[str, Any]:
        accepted = self._signature.parameters
        if any(p.kind is inspect.Parameter.VAR_KEYWORD for p in accepted.values()):
            kwargs = dict(parameters)
        else:
            kwargs = {k: v for k, v in parameters.items() if k in accepted}
            dropped = sorted(set(parameters) - set(kwargs))
            if dropped:
                logger.info(f"Ignoring unsupported argument(s) for {self.name}: {', '.join(dropped)}")
        self._signature.bind(**kwargs)
        return kwargs

    def execute(self, parameters: Dict[str, Any]) -> Any:
        return self._fn(**parameters)


Flow = Callable[..., Union[Any, Awaitable[Any]]]


class FlowRegistry:
    """Name -> sub-workflow mapping consulted by flow tools (sub_flow, iterator)."""

    def __init__(self, flows: Optional[Mapping[str, Flow]] = None):
        self._flows: Dict[str, Flow] = dict(flows or {})

    def register(self, name: str, flow: Flow) -> None:
        self._flows[name] = flow

    def get(self, name: str) -> Optional[Flow]:
        return self._flows.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._flows

    def names(self) -> List[str]:
        return sorted(self._flows)


class ToolRegistry:
    """Fixed name -> handler mapping plus schema validation of proposed calls."""

    def __init__(self, handlers: Iterable[ToolHandler], flow_registry: Optional[FlowRegistry] = None):
        self._handlers: Dict[str, ToolHandler] = {}
        for h in handlers:
            if not h.name:
                raise ValueError(f"Tool handler {h!r} has no name")
            if h.name == FINISH_TOOL_NAME:
                raise ValueError("'finish' is reserved and handled by the orchestrator")
            if h.name in self._handlers:
                raise ValueError(f"Duplicate tool name: {h.name}")
            self._handlers[h.name] = h
        self.flow_registry = flow_registry

    def __contains__(self, name: object) -> bool:
        return name == FINISH_TOOL_NAME or name in self._handlers

    def get(self, name: str) -> Optional[ToolHandler]:
        return self._handlers.get(name)

    def names(self) -> List[str]:
        return list(self._handlers) + [FINISH_TOOL_NAME]

    def definitions(self) -> List[ToolDefinition]:
        return [h.definition() for h in self._handlers.values()] + [FINISH_DEFINITION]

    def validate(self, call: ToolCall) -> Optional[str]:
        """Return None if the call is valid, else a description of the violation."""
        params = call.parameters or {}

        if call.tool not in self:
            return (
                f"Unknown tool '{call.tool}'. "
                f"Available tools: {', '.join(self.names())}"
            )

        if call.tool == FINISH_TOOL_NAME:
            if "output" not in params:
                return "Tool 'finish' requires parameter 'output'"
            return None

        if call.tool in FLOW_TOOL_NAMES:
            flow = params.get("flow")
            if flow is None:
                return f"Tool '{call.tool}' requires parameter 'flow'"
            if self.flow_registry is None:
                return f"Tool '{call.tool}' references flow '{flow}' but no flow registry is configured"
            if not isinstance(flow, str) or flow not in self.flow_registry:
                known = ", ".join(self.flow_registry.names()) or "(none)"
                return f"Tool '{call.tool}' references unknown flow '{flow}'. Known flows: {known}"

        handler = self._handlers[call.tool]
        missing = [p for p in handler.definition().required if p not in params]
        if missing:
            return (
                f"Tool '{call.tool}' is missing required parameter(s): "
                + ", ".join(f"'{p}'" for p in missing)
            )
        return None

    def validate_all(self, calls: Iterable[ToolCall]) -> List[str]:
        """Collect every violation in a batch (empty list means the batch is valid)."""
        violations = []
        for i, call in enumerate(calls):
            problem = self.validate(call)
            if problem:
                violations.append(f"tool_calls[{i}]: {problem}")
        return violations
