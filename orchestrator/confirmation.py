"""
Human confirmation gate in front of the finish tool.
"""

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

logger = logging.getLogger(__name__)

AFFIRMATIVE_TOKENS = frozenset({
    "y", "yes", "ok", "okay", "approve", "approved", "accept", "confirm", "lgtm",
})

ConfirmationChannel = Callable[[str], Union[str, Awaitable[str]]]


@dataclass
class ConfirmationDecision:
    """approved=False carries the user's full reply as feedback"""
    approved: bool
    feedback: Optional[str] = None


def is_affirmative(response: str) -> bool:
    token = (response or "").strip().lower().rstrip(".!")
    return token in AFFIRMATIVE_TOKENS


class ConfirmationGate:
    """Presents a proposed final output to a human and waits for a yes/no reply.

    channel is either a callable prompt(text) -> str (sync or async) or an
    object exposing such a prompt() method. With enabled=False every proposal
    is approved without asking.
    """

    def __init__(self, channel: Optional[Any] = None, enabled: bool = True):
        self.channel = channel
        self.enabled = enabled
        if enabled and channel is None:
            raise ValueError("A confirmation channel is required when confirmation is enabled")

    async def confirm(self, proposed_output: str) -> ConfirmationDecision:
        if not self.enabled:
            return ConfirmationDecision(approved=True)

        text = (
            "The agent proposes to finish with this output:\n\n"
            f"{proposed_output}\n\n"
            "Approve? Reply 'yes' to accept, or describe what should change."
        )
        response = await self._ask(text)
        if is_affirmative(response):
            logger.info("Final output approved")
            return ConfirmationDecision(approved=True)
        logger.info(f"Final output rejected: {response!r}")
        return ConfirmationDecision(approved=False, feedback=response or "")

    async def ask(self, prompt: str) -> str:
        """Free-form question to the same human channel (used by user_input)."""
        if self.channel is None:
            raise RuntimeError("No human input channel configured")
        return await self._ask(prompt)

    async def _ask(self, text: str) -> str:
        prompt_fn = getattr(self.channel, "prompt", self.channel)
        res = prompt_fn(text)
        if inspect.isawaitable(res):
            res = await res
        return "" if res is None else str(res)
