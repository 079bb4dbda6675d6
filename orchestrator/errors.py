"""
Error taxonomy for the orchestration loop.

LLMRequestError, ResponseParseError, ToolValidationError, ToolExecutionError
and MaxStepsExceeded are recovered inside the loop: they become corrective
messages in the conversation and error events on the sink. RunAborted is the
only one that reaches the caller of Orchestrator.run().
"""

from typing import Any, List, Optional


class AgentError(Exception):
    """Base class for all orchestrator errors"""
    pass


class LLMRequestError(AgentError):
    """The language-model request failed (transport, API status, or payload)"""
    pass


class LLMTransportError(LLMRequestError):
    """Could not reach the model endpoint (connection, credentials, timeout)"""
    pass


class LLMStatusError(LLMRequestError):
    """The model endpoint answered with a non-2xx status"""

    def __init__(self, message: str, status_code: Optional[int] = None, error_code: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code


class LLMPayloadError(LLMRequestError):
    """The model endpoint answered, but the body could not be decoded"""
    pass


class ResponseParseError(AgentError):
    """The model reply could not be turned into a thought + tool calls"""

    def __init__(self, message: str, raw: Any = None):
        super().__init__(message)
        self.raw = raw


class ToolValidationError(AgentError):
    """One or more proposed tool calls violate their schema"""

    def __init__(self, violations: List[str]):
        super().__init__("; ".join(violations))
        self.violations = list(violations)


class ToolExecutionError(AgentError):
    """A tool handler raised while executing"""

    def __init__(self, tool: str, message: str):
        super().__init__(f"{tool}: {message}")
        self.tool = tool
        self.message = message


class MaxStepsExceeded(AgentError):
    """The step bound was reached without an approved finish"""

    def __init__(self, max_steps: int):
        super().__init__(f"Reached the maximum of {max_steps} steps without finishing")
        self.max_steps = max_steps


class RunAborted(AgentError):
    """An unclassified error escaped the step loop and ended the run"""
    pass
