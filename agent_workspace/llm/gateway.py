"""
Generation Gateway — Unified Entry Point for Text and Embedding Requests

Every collaborator that needs generated text or an embedding vector goes
through this class:

  GenerationGateway.complete() / .stream() / .embed()
        │
        ▼
  FallbackChain            ← ordered providers, first success wins
        │
        ▼
  latency / size logging

Usage::

    gateway  = GenerationGateway()
    messages = gateway.build_messages(system_prompt, question)
    text     = await gateway.complete(messages, temperature=0.1, max_tokens=20)

    async for token in gateway.stream(messages, max_tokens=200):
        ...

    vector = await gateway.embed("senior backend engineer")
"""

from __future__ import annotations

import logging
import time
from typing import AsyncIterator

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from agent_workspace.core.config import settings
from agent_workspace.llm.fallback import FallbackChain
from agent_workspace.llm.providers import configured_providers

logger = logging.getLogger(__name__)


class GenerationGateway:
    """
    Provider-agnostic generation interface with ordered fallback.

    Instantiate once per application and share; all methods are async and
    safe for concurrent use.
    """

    def __init__(self, chain: FallbackChain | None = None) -> None:
        self._chain = chain or FallbackChain(
            configured_providers(),
            per_attempt_timeout=settings.llm_timeout_seconds,
        )

    async def complete(
        self,
        messages:    list[BaseMessage],
        temperature: float | None = None,
        max_tokens:  int | None = None,
    ) -> str:
        """
        Generate a full completion.

        Raises:
            ProvidersExhaustedError: If every configured provider failed.
        """
        temperature = settings.llm_temperature if temperature is None else temperature
        max_tokens  = max_tokens or settings.llm_max_tokens

        t0      = time.perf_counter()
        content = await self._chain.ainvoke(messages, temperature, max_tokens)
        latency = (time.perf_counter() - t0) * 1000

        logger.info(
            "GenerationGateway | complete chars_out=%d max_tokens=%d latency_ms=%.1f",
            len(content), max_tokens, latency,
        )
        return content

    async def stream(
        self,
        messages:    list[BaseMessage],
        temperature: float | None = None,
        max_tokens:  int | None = None,
    ) -> AsyncIterator[str]:
        """Yield one text delta per provider chunk."""
        temperature = settings.llm_temperature if temperature is None else temperature
        max_tokens  = max_tokens or settings.llm_max_tokens

        t0    = time.perf_counter()
        total = 0
        async for token in self._chain.astream(messages, temperature, max_tokens):
            total += len(token)
            yield token

        logger.info(
            "GenerationGateway | stream chars_out=%d latency_ms=%.1f",
            total, (time.perf_counter() - t0) * 1000,
        )

    async def embed(self, text: str) -> list[float]:
        """Return an embedding vector for `text`."""
        vector = await self._chain.aembed(text)
        logger.debug("GenerationGateway | embed chars_in=%d dims=%d", len(text), len(vector))
        return vector

    # -----------------------------------------------------------------------
    # Convenience: build message list
    # -----------------------------------------------------------------------

    @staticmethod
    def build_messages(system_prompt: str | None, user_text: str) -> list[BaseMessage]:
        """
        Build a [SystemMessage, HumanMessage] list.
        The system message is omitted when system_prompt is empty.
        """
        messages: list[BaseMessage] = []
        if system_prompt:
            messages.append(SystemMessage(content=system_prompt))
        messages.append(HumanMessage(content=user_text))
        return messages
