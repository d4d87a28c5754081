"""
Answer Service

Free-form and context-grounded answers through the generation gateway.

  no context units  → casual prompt, short output
  context units     → first CONTEXT_UNITS units inlined into the prompt

The service never raises: an empty message, an empty generation, and a
provider failure each map to a fixed reply.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator, Sequence

from agent_workspace.core.config import settings
from agent_workspace.llm.gateway import GenerationGateway
from agent_workspace.vectorstore.base import ContextUnit

logger = logging.getLogger(__name__)

CONTEXT_UNITS         = 5
CASUAL_MAX_TOKENS     = 120
STREAMING_MAX_TOKENS  = 200
GROUNDED_MAX_TOKENS   = 300
ANSWER_TEMPERATURE    = 0.7

FAULT_REPLY = "I'm here to help! How can I assist you today?"

_CASUAL_PROMPT   = "You are {assistant}. Be friendly and concise.\n\nUser: {message}\nAssistant:"
_GROUNDED_PROMPT = "Answer based on context:\n\n{context}\n\nQ: {message}\nA:"


def greeting_reply(assistant: str) -> str:
    return f"Hello! I'm {assistant}. How can I help?"


def empty_generation_reply(assistant: str) -> str:
    return f"I'm {assistant}. How can I help?"


def workspace_fallback_reply(assistant: str) -> str:
    return (
        f"I'm {assistant}, your agentic workspace. I can read resumes, analyze CSV files, "
        "and chat with you. How can I help?"
    )


class AnswerService:
    """
    Usage:
        answers = AnswerService(gateway)
        text    = await answers.answer("What does the resume say about Kafka?", units)
    """

    def __init__(self, gateway: GenerationGateway, assistant_name: str | None = None) -> None:
        self._gateway   = gateway
        self._assistant = assistant_name or settings.assistant_name

    @property
    def assistant_name(self) -> str:
        return self._assistant

    def build_prompt(self, message: str, units: Sequence[ContextUnit] = ()) -> str:
        if not units:
            return _CASUAL_PROMPT.format(assistant=self._assistant, message=message)
        context = "\n\n".join(u.text for u in units[:CONTEXT_UNITS])
        return _GROUNDED_PROMPT.format(context=context, message=message)

    async def answer(self, message: str, units: Sequence[ContextUnit] = ()) -> str:
        message = (message or "").strip()
        if not message:
            return greeting_reply(self._assistant)

        max_tokens = GROUNDED_MAX_TOKENS if units else CASUAL_MAX_TOKENS
        messages   = self._gateway.build_messages(None, self.build_prompt(message, units))
        try:
            text = await self._gateway.complete(
                messages, temperature=ANSWER_TEMPERATURE, max_tokens=max_tokens,
            )
        except Exception:
            logger.warning(
                "AnswerService | generation failed grounded=%s", bool(units), exc_info=True,
            )
            return FAULT_REPLY

        text = (text or "").strip()
        return text or empty_generation_reply(self._assistant)

    async def stream(self, message: str) -> AsyncIterator[str]:
        """Casual answer as text deltas. Errors propagate to the caller."""
        messages = self._gateway.build_messages(None, self.build_prompt(message))
        async for token in self._gateway.stream(
            messages, temperature=ANSWER_TEMPERATURE, max_tokens=STREAMING_MAX_TOKENS,
        ):
            yield token
