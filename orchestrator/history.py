"""
Conversation history management for the orchestrator.
Handles seeding, token estimation and budget-driven compaction.
"""

import logging
from typing import Any, List, Optional

from .models import (
    KIND_GOAL, KIND_OBSERVATION, KIND_PHASE, KIND_SUMMARY, KIND_SYSTEM, Message,
)
from .parser import response_text

logger = logging.getLogger(__name__)

# system prompt + goal restatement
PROTECTED_FLOOR = 2
DEFAULT_TOKEN_BUDGET = 24_000


class LLMSummarizer:
    """Summarizes text with a language-model client.

    Used for long tool output and for compacting old observations.
    """

    def __init__(self, llm_client: Any, max_input_chars: int = 30_000):
        self.llm_client = llm_client
        self.max_input_chars = max_input_chars

    async def summarize(self, text: str) -> str:
        if len(text) > self.max_input_chars:
            half = self.max_input_chars // 2
            text = text[:half] + "\n...\n" + text[-half:]
        messages = [
            {
                "role": "system",
                "content": (
                    "You are a summarizer for an autonomous agent. "
                    "Produce a concise summary that preserves file names, numbers, "
                    "errors, and any facts needed to continue the task. "
                    "Keep it under 200 words."
                ),
            },
            {"role": "user", "content": f"Summarize this tool output:\n\n{text}"},
        ]
        payload = await self.llm_client.complete(messages)
        return response_text(payload).strip()


class HistoryManager:
    """Seeds and compacts the conversation.

    The conversation list itself is owned by the orchestrator's RunState; this
    class only operates on what it is handed.
    """

    def __init__(
        self,
        system_prompt: str,
        phase_instruction: str = "",
        summarizer: Optional[Any] = None,
        token_budget: int = DEFAULT_TOKEN_BUDGET,
    ):
        self.system_prompt = system_prompt
        self.phase_instruction = phase_instruction
        self.summarizer = summarizer
        self.token_budget = token_budget
        self._warned_unbounded = False

    def seed(self, goal: str) -> List[Message]:
        conversation = [
            Message(role="system", content=self.system_prompt, kind=KIND_SYSTEM),
            Message(role="user", content=f"Your goal is: {goal}", kind=KIND_GOAL),
        ]
        if self.phase_instruction:
            conversation.append(Message(role="user", content=self.phase_instruction, kind=KIND_PHASE))
        return conversation

    def append(self, conversation: List[Message], message: Message) -> None:
        conversation.append(message)

    # ------------------------------------------------------------------
    # Token estimation
    # ------------------------------------------------------------------

    @staticmethod
    def _estimate_tokens(text: str) -> int:
        """Token estimate: ~3.5 chars per token for mixed English/code."""
        return max(1, int(len(text) / 3.5))

    def _message_tokens(self, msg: Message) -> int:
        return self._estimate_tokens(msg.content) + 5

    def total_tokens(self, conversation: List[Message]) -> int:
        return sum(self._message_tokens(m) for m in conversation)

    # ------------------------------------------------------------------
    # Compaction
    # ------------------------------------------------------------------

    async def compact(self, conversation: List[Message]) -> List[Message]:
        """Shrink the conversation in place until it fits the token budget.

        The oldest entry after the protected floor goes first: observations are
        replaced by a summary (dropped if summarizing fails), anything else is
        dropped. Stops when under budget or only the floor is left.
        """
        if self.summarizer is None:
            if not self._warned_unbounded and self.total_tokens(conversation) > self.token_budget:
                logger.warning("No summarizer configured; conversation history will grow without compaction")
                self._warned_unbounded = True
            return conversation

        removed = summarized = 0
        while self.total_tokens(conversation) > self.token_budget and len(conversation) > PROTECTED_FLOOR:
            oldest = conversation[PROTECTED_FLOOR]
            if oldest.kind == KIND_OBSERVATION:
                try:
                    summary = await self.summarizer.summarize(oldest.content)
                except Exception as e:
                    logger.warning(f"Observation summary failed ({e}); dropping entry")
                    del conversation[PROTECTED_FLOOR]
                    removed += 1
                    continue
                conversation[PROTECTED_FLOOR] = Message(
                    role=oldest.role,
                    content=f"[Summary of earlier observation]\n{(summary or '').strip()}",
                    kind=KIND_SUMMARY,
                )
                summarized += 1
            else:
                del conversation[PROTECTED_FLOOR]
                removed += 1

        if removed or summarized:
            logger.info(
                f"Compacted history: {summarized} summarized, {removed} dropped, "
                f"~{self.total_tokens(conversation)} tokens left"
            )
        return conversation

