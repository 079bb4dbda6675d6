"""
Main Orchestrator class that drives the thought / tool-call loop.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional

from .confirmation import ConfirmationGate
from .errors import (
    LLMRequestError, MaxStepsExceeded, ResponseParseError, RunAborted, ToolValidationError,
)
from .events import (
    AgentEvent, EventEmitter, EventSink,
    ERROR, FINISHED, LLM_RESPONSE, STEP_STARTED, THOUGHT,
)
from .execution import DEFAULT_SUMMARIZE_THRESHOLD, ToolExecutor
from .history import DEFAULT_TOKEN_BUDGET, HistoryManager
from .models import (
    KIND_ASSISTANT, KIND_CORRECTION, KIND_FEEDBACK, KIND_OBSERVATION, KIND_REMINDER,
    Message, ParsedResponse,
)
from .parser import parse_response, response_text
from .prompts import (
    PHASE_INSTRUCTION,
    compose_system_prompt,
    format_assistant_turn,
    format_empty_calls_reminder,
    format_llm_failure,
    format_observation,
    format_parse_failure,
    format_rejection,
    format_validation_failure,
    synthesize_final_output,
)
from .registry import FINISH_TOOL_NAME, FlowRegistry, ToolHandler, ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 70

# returned by _request_completion when the request failed and was recovered
_NO_RESPONSE = object()


@dataclass
class RunState:
    """Everything one run owns. Rebuilt from scratch on every run()."""
    goal: str
    conversation: List[Message] = field(default_factory=list)
    step: int = 0
    final_output: Optional[str] = None
    last_observation: str = ""


class Orchestrator:
    """
    Autonomous agent loop.

    Flow:
    1. Seed the conversation with the system prompt, the goal and a phase instruction
    2. Ask the language model for {thought, tool_calls, parallel}
    3. Validate the calls against the tool registry
    4. finish -> confirmation gate; approved ends the run, rejected feeds back
    5. Otherwise execute the calls and append one Observation message, loop
    6. After max_steps model requests, synthesize an output from the last observation

    Modeled failures (LLM request, parse, validation, tool execution) become
    corrective messages so the model can fix itself on the next step.
    """

    def __init__(
        self,
        llm_client: Any,
        tools: Iterable[ToolHandler],
        *,
        flow_registry: Optional[FlowRegistry] = None,
        confirmation_channel: Optional[Any] = None,
        require_confirmation: bool = True,
        summarizer: Optional[Any] = None,
        event_sink: Optional[EventSink] = None,
        max_steps: int = DEFAULT_MAX_STEPS,
        summarize_threshold: int = DEFAULT_SUMMARIZE_THRESHOLD,
        history_token_budget: int = DEFAULT_TOKEN_BUDGET,
        native_tool_calling: bool = False,
        allow_parallel: bool = True,
    ):
        if max_steps < 1:
            raise ValueError("max_steps must be at least 1")
        self.llm_client = llm_client
        self.max_steps = max_steps
        self.native_tool_calling = native_tool_calling
        self.allow_parallel = allow_parallel
        self.registry = ToolRegistry(tools, flow_registry=flow_registry)
        self.executor = ToolExecutor(self.registry, summarizer=summarizer, summarize_threshold=summarize_threshold)
        self.gate = ConfirmationGate(confirmation_channel, enabled=require_confirmation)
        self.system_prompt = compose_system_prompt(self.registry.definitions())
        self.history = HistoryManager(
            self.system_prompt,
            phase_instruction=PHASE_INSTRUCTION,
            summarizer=summarizer,
            token_budget=history_token_budget,
        )
        self.events = EventEmitter(event_sink)
        self._running = False

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(self, goal: str) -> str:
        """Run the loop for one goal and return the final output."""
        if self._running:
            raise RuntimeError("Orchestrator.run() is already in progress on this instance")
        self._running = True
        state = RunState(goal=goal, conversation=self.history.seed(goal))
        logger.info(f"Run started (max_steps={self.max_steps}): {goal[:200]}")
        try:
            return await self._loop(state)
        except Exception as e:
            logger.exception("Run aborted by unexpected error")
            self.events.emit(AgentEvent(type=ERROR, content=f"Run aborted: {e}", data={"kind": "RunAborted"}))
            raise RunAborted(str(e) or type(e).__name__) from e
        finally:
            self._running = False
            await self.events.drain()

    async def _loop(self, state: RunState) -> str:
        while state.step < self.max_steps:
            state.step += 1
            self.events.emit(AgentEvent(
                type=STEP_STARTED,
                content=f"Step {state.step}/{self.max_steps}",
                data={"step": state.step, "max_steps": self.max_steps},
            ))
            if await self._step(state):
                logger.info(f"Run finished after {state.step} step(s)")
                return state.final_output

        return self._finish_at_step_limit(state)

    async def _step(self, state: RunState) -> bool:
        """One model request and its consequences. True when the run is finished."""
        payload = await self._request_completion(state)
        if payload is _NO_RESPONSE:
            return False

        parsed = self._parse(state, payload)
        if parsed is None:
            return False

        self._append(state, Message(role="assistant", content=format_assistant_turn(parsed), kind=KIND_ASSISTANT))
        self.events.emit(AgentEvent(type=THOUGHT, content=parsed.thought_text, data={"step": state.step}))

        if not self._validate(state, parsed):
            return False

        if not parsed.tool_calls:
            reminder = format_empty_calls_reminder(self.registry.names())
            self._append(state, Message(role="user", content=reminder, kind=KIND_REMINDER))
            return False

        finish = next((tc for tc in parsed.tool_calls if tc.tool == FINISH_TOOL_NAME), None)
        if finish is not None:
            return await self._confirm_finish(state, parsed, finish.parameters.get("output"))

        results = await self.executor.execute(parsed.tool_calls, parallel=parsed.parallel and self.allow_parallel, emit=self.events)
        for r in results:
            if not r.success:
                self.events.emit(AgentEvent(
                    type=ERROR,
                    content=f"{r.tool} failed: {r.error}",
                    data={"kind": "ToolExecutionError", "tool_name": r.tool},
                ))
        observation = format_observation(results)
        state.last_observation = observation
        self._append(state, Message(role="user", content=observation, kind=KIND_OBSERVATION))
        return False

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def _request_completion(self, state: RunState) -> Any:
        await self.history.compact(state.conversation)
        messages = [m.to_dict() for m in state.conversation]
        tools = [d.to_api_spec() for d in self.registry.definitions()] if self.native_tool_calling else None
        try:
            if tools:
                payload = await self.llm_client.complete(messages, tools=tools)
            else:
                payload = await self.llm_client.complete(messages)
        except LLMRequestError as e:
            logger.warning(f"LLM request failed at step {state.step}: {e}")
            self._recover(state, e, format_llm_failure(e))
            return _NO_RESPONSE
        self.events.emit(AgentEvent(type=LLM_RESPONSE, content=response_text(payload)[:2000], data={"step": state.step}))
        return payload

    def _parse(self, state: RunState, payload: Any) -> Optional[ParsedResponse]:
        try:
            return parse_response(payload)
        except ResponseParseError as e:
            logger.warning(f"Unparseable model response at step {state.step}: {e}")
            raw = e.raw if isinstance(e.raw, str) else response_text(payload)
            self._recover(state, e, format_parse_failure(e, raw))
            return None

    def _validate(self, state: RunState, parsed: ParsedResponse) -> bool:
        violations = self.registry.validate_all(parsed.tool_calls)
        if not violations:
            return True
        err = ToolValidationError(violations)
        logger.warning(f"Rejected {len(violations)} invalid tool call(s) at step {state.step}")
        self._recover(state, err, format_validation_failure(violations))
        return False

    async def _confirm_finish(self, state: RunState, parsed: ParsedResponse, output: Any) -> bool:
        proposed = output if isinstance(output, str) else str(output)
        decision = await self.gate.confirm(proposed)
        if decision.approved:
            state.final_output = proposed
            self.events.emit(AgentEvent(type=FINISHED, content=proposed, data={"step": state.step, "reason": "finish"}))
            return True

        skipped = [tc.tool for tc in parsed.tool_calls if tc.tool != FINISH_TOOL_NAME]
        self._append(state, Message(
            role="user",
            content=format_rejection(decision.feedback or "", skipped),
            kind=KIND_FEEDBACK,
        ))
        return False

    def _finish_at_step_limit(self, state: RunState) -> str:
        err = MaxStepsExceeded(self.max_steps)
        logger.warning(str(err))
        self.events.emit(AgentEvent(type=ERROR, content=str(err), data={"kind": "MaxStepsExceeded"}))
        state.final_output = synthesize_final_output(self.max_steps, state.last_observation)
        self.events.emit(AgentEvent(
            type=FINISHED,
            content=state.final_output,
            data={"step": state.step, "reason": "max_steps"},
        ))
        return state.final_output

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _append(self, state: RunState, message: Message) -> None:
        self.history.append(state.conversation, message)

    def _recover(self, state: RunState, error: Exception, corrective: str) -> None:
        """Turn a modeled failure into one corrective message plus an error event."""
        self._append(state, Message(role="user", content=corrective, kind=KIND_CORRECTION))
        self.events.emit(AgentEvent(
            type=ERROR,
            content=str(error),
            data={"kind": type(error).__name__, "step": state.step},
        ))
