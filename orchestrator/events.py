"""
Agent event data types and the fire-and-forget emitter that delivers them.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Set

logger = logging.getLogger(__name__)

STEP_STARTED = "step_started"
THOUGHT = "thought"
TOOL_CALL_STARTED = "tool_call_started"
TOOL_CALL_FINISHED = "tool_call_finished"
ERROR = "error"
FINISHED = "finished"
LLM_RESPONSE = "llm_response"

EVENT_TYPES = frozenset({
    STEP_STARTED, THOUGHT, TOOL_CALL_STARTED, TOOL_CALL_FINISHED, ERROR, FINISHED, LLM_RESPONSE,
})


@dataclass
class AgentEvent:
    """Event emitted during a run"""
    type: str  # step_started, thought, tool_call_started, tool_call_finished, error, finished, llm_response
    content: str = ""
    data: Optional[Dict[str, Any]] = None


EventSink = Callable[[AgentEvent], Any]


class EventEmitter:
    """Delivers events to an optional sink without ever blocking or failing the loop.

    Sync sinks are called inline. If the sink returns an awaitable it is
    scheduled as a task; pending tasks are collected by drain() when the run ends.
    """

    def __init__(self, sink: Optional[EventSink] = None):
        self._sink = sink
        self._pending: Set[asyncio.Task] = set()

    def __call__(self, event: AgentEvent) -> None:
        self.emit(event)

    def emit(self, event: AgentEvent) -> None:
        if self._sink is None:
            return
        try:
            res = self._sink(event)
        except Exception as e:
            logger.warning(f"Event sink failed on {event.type}: {e}")
            return
        if inspect.isawaitable(res):
            task = asyncio.ensure_future(res)
            self._pending.add(task)
            task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning(f"Async event sink failed: {task.exception()}")

    async def drain(self) -> None:
        """Wait for any scheduled async sink deliveries."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
