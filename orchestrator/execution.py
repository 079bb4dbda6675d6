"""
Tool execution for validated calls: sequential or concurrent, with per-call
failure isolation and summarization of long textual output.
"""

import asyncio
import inspect
import json
import logging
from typing import Any, Callable, List, Optional

from .errors import ToolExecutionError
from .events import AgentEvent, TOOL_CALL_FINISHED, TOOL_CALL_STARTED
from .models import ToolCall, ToolResult
from .registry import ToolHandler, ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_SUMMARIZE_THRESHOLD = 1000


def _preview(value: Any, limit: int = 300) -> str:
    text = value if isinstance(value, str) else json.dumps(value, default=str)
    return text if len(text) <= limit else text[:limit] + "..."


class ToolExecutor:
    """Runs validated ToolCalls against their registered handlers.

    Results always come back in the order of the input calls. A handler that
    raises produces ToolResult(success=False) and never affects its siblings.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        summarizer: Optional[Any] = None,
        summarize_threshold: int = DEFAULT_SUMMARIZE_THRESHOLD,
    ):
        self.registry = registry
        self.summarizer = summarizer
        self.summarize_threshold = summarize_threshold

    async def execute(
        self,
        calls: List[ToolCall],
        parallel: bool = False,
        emit: Optional[Callable[[AgentEvent], None]] = None,
    ) -> List[ToolResult]:
        if parallel and len(calls) > 1:
            # gather() preserves argument order regardless of completion order
            return list(await asyncio.gather(*[self._run_one(tc, emit) for tc in calls]))

        results = []
        for tc in calls:
            results.append(await self._run_one(tc, emit))
        return results

    async def _run_one(self, call: ToolCall, emit: Optional[Callable[[AgentEvent], None]]) -> ToolResult:
        if emit:
            emit(AgentEvent(
                type=TOOL_CALL_STARTED,
                content=call.tool,
                data={"tool_name": call.tool, "parameters": call.parameters},
            ))

        try:
            output = await self._invoke(call)
            result = ToolResult(tool=call.tool, parameters=call.parameters, success=True, output=output)
        except ToolExecutionError as e:
            logger.warning(f"Tool {call.tool} failed: {e.message}")
            result = ToolResult(tool=call.tool, parameters=call.parameters, success=False, error=e.message)

        if result.success:
            result = await self._compact_output(result)

        if emit:
            emit(AgentEvent(
                type=TOOL_CALL_FINISHED,
                content=_preview(result.output) if result.success else (result.error or "Unknown error"),
                data={
                    "tool_name": call.tool,
                    "parameters": call.parameters,
                    "success": result.success,
                    "warning": result.warning,
                },
            ))
        return result

    async def _invoke(self, call: ToolCall) -> Any:
        handler = self.registry.get(call.tool)
        if handler is None:
            raise ToolExecutionError(call.tool, f"No handler registered for {call.tool}")
        try:
            arguments = handler.prepare(call.parameters)
        except TypeError as e:
            raise ToolExecutionError(call.tool, f"Invalid arguments for {call.tool}: {e}") from e
        try:
            if _is_async_handler(handler):
                return await handler.execute(arguments)
            res = await asyncio.to_thread(handler.execute, arguments)
            if inspect.isawaitable(res):
                res = await res
            return res
        except Exception as e:
            logger.debug(f"Tool execution error: {call.tool}", exc_info=True)
            raise ToolExecutionError(call.tool, str(e) or type(e).__name__) from e

    async def _compact_output(self, result: ToolResult) -> ToolResult:
        """Summarize long textual output; keep the full text if summarizing fails."""
        out = result.output
        if self.summarizer is None or not isinstance(out, str) or len(out) <= self.summarize_threshold:
            return result
        try:
            summary = await self.summarizer.summarize(out)
        except Exception as e:
            logger.warning(f"Summarizing {result.tool} output failed ({e}), keeping full output")
            result.warning = f"Output summarization failed: {e}"
            return result
        if not summary or not summary.strip():
            result.warning = "Output summarization returned nothing; full output kept"
            return result
        logger.info(f"Summarized {result.tool} output from {len(out)} to {len(summary)} chars")
        result.output = f"[Summary of {len(out)} chars of output]\n{summary.strip()}"
        return result


def _is_async_handler(handler: ToolHandler) -> bool:
    if getattr(handler, "is_async", False):
        return True
    return inspect.iscoroutinefunction(handler.execute)
