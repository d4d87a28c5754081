"""
Provider Fallback Chain — Automatic Failover

Every generation or embedding request walks the configured providers in
priority order and returns the first success. Any failure (HTTP error,
rate limit, connection refused, timeout) moves on to the next provider;
only exhausting the whole list is a hard failure.

Per-attempt timeout: settings.llm_timeout_seconds (default 30 s).

Circuit breaker pattern:
  If a provider fails N consecutive times, it is skipped until a reset
  window passes. This prevents repeated slow-path timeouts against a
  backend that is known to be down.
  (Implemented as a simple in-process counter.)
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import AsyncIterator

from langchain_core.messages import BaseMessage

from agent_workspace.llm.providers import Provider, ProviderFactory, ProviderSpec

logger = logging.getLogger(__name__)


class ProvidersExhaustedError(RuntimeError):
    """Raised when every configured provider failed for one request."""

    def __init__(self, operation: str, errors: list[str]) -> None:
        self.operation = operation
        self.errors    = errors
        detail = "\n".join(f"  - {e}" for e in errors) or "  - no provider configured"
        super().__init__(f"All providers failed for {operation}:\n{detail}")


# ---------------------------------------------------------------------------
# Circuit breaker (in-process)
# ---------------------------------------------------------------------------

@dataclass
class _CircuitState:
    failures:       int   = 0
    open_until:     float = 0.0        # monotonic time after which to retry
    OPEN_THRESHOLD: int   = 3          # consecutive failures before opening
    RESET_SECONDS:  int   = 60         # how long circuit stays open


_CIRCUIT_STATES: dict[Provider, _CircuitState] = {
    p: _CircuitState() for p in Provider
}


def _is_circuit_open(provider: Provider) -> bool:
    state = _CIRCUIT_STATES[provider]
    if state.failures < state.OPEN_THRESHOLD:
        return False
    if time.monotonic() >= state.open_until:
        state.failures = 0     # half-open: allow a probe
        return False
    return True


def _record_failure(provider: Provider) -> None:
    state = _CIRCUIT_STATES[provider]
    state.failures  += 1
    state.open_until = time.monotonic() + state.RESET_SECONDS
    logger.warning(
        "Circuit breaker | provider=%s failures=%d",
        provider.value, state.failures,
    )


def _record_success(provider: Provider) -> None:
    _CIRCUIT_STATES[provider].failures = 0


def reset_circuits() -> None:
    """Close every circuit. Used at startup and between tests."""
    for state in _CIRCUIT_STATES.values():
        state.failures   = 0
        state.open_until = 0.0


def _describe(spec: ProviderSpec, exc: BaseException) -> str:
    return f"{spec}: {type(exc).__name__}: {exc}"


# ---------------------------------------------------------------------------
# FallbackChain
# ---------------------------------------------------------------------------

class FallbackChain:
    """
    Ordered chain of providers with automatic failover.

    Usage::

        chain = FallbackChain(configured_providers())

        text = await chain.ainvoke(messages, temperature=0.7, max_tokens=120)

        async for token in chain.astream(messages, temperature=0.7, max_tokens=200):
            yield token

        vector = await chain.aembed("query text")

    The chain holds no per-request state and is safe to share.
    """

    def __init__(
        self,
        specs:               list[ProviderSpec],
        factory:             ProviderFactory | None = None,
        per_attempt_timeout: float = 30.0,
    ) -> None:
        self._specs               = list(specs)
        self._factory             = factory or ProviderFactory()
        self._per_attempt_timeout = per_attempt_timeout

    @property
    def specs(self) -> list[ProviderSpec]:
        return list(self._specs)

    def _candidates(self, embeddings: bool = False) -> list[ProviderSpec]:
        candidates = []
        for spec in self._specs:
            if embeddings and not spec.supports_embeddings:
                continue
            if _is_circuit_open(spec.provider):
                logger.debug("FallbackChain | skipping provider=%s (circuit open)", spec.provider.value)
                continue
            candidates.append(spec)
        return candidates

    # -----------------------------------------------------------------------
    # Non-streaming invoke
    # -----------------------------------------------------------------------

    async def ainvoke(
        self,
        messages:    list[BaseMessage],
        temperature: float,
        max_tokens:  int,
    ) -> str:
        """
        Return the first provider's response as plain text.

        Raises:
            ProvidersExhaustedError: If every provider failed.
        """
        errors: list[str] = []

        for spec in self._candidates():
            try:
                llm = self._factory.build_chat(spec, temperature, max_tokens)
                logger.debug("FallbackChain | trying provider=%s", spec)
                result = await asyncio.wait_for(
                    llm.ainvoke(messages),
                    timeout=self._per_attempt_timeout,
                )
                _record_success(spec.provider)
                return _content_text(result.content)

            except asyncio.TimeoutError:
                err = f"{spec}: timed out after {self._per_attempt_timeout}s"
                logger.warning("FallbackChain | %s", err)
                _record_failure(spec.provider)
                errors.append(err)

            except Exception as exc:
                err = _describe(spec, exc)
                logger.warning("FallbackChain | provider failed — %s", err)
                _record_failure(spec.provider)
                errors.append(err)

        raise ProvidersExhaustedError("complete", errors)

    # -----------------------------------------------------------------------
    # Streaming invoke
    # -----------------------------------------------------------------------

    async def astream(
        self,
        messages:    list[BaseMessage],
        temperature: float,
        max_tokens:  int,
    ) -> AsyncIterator[str]:
        """
        Stream text deltas with provider fallback.

        Falls back only BEFORE any output was produced. Once a provider has
        yielded a token, a mid-stream failure propagates to the caller since
        the partial text has already left this function.
        """
        errors: list[str] = []

        for spec in self._candidates():
            produced = False
            try:
                llm = self._factory.build_chat(spec, temperature, max_tokens, streaming=True)
                logger.debug("FallbackChain.stream | trying provider=%s", spec)
                async for chunk in llm.astream(messages):
                    text = _content_text(chunk.content)
                    if text:
                        produced = True
                        yield text
                _record_success(spec.provider)
                return

            except Exception as exc:
                _record_failure(spec.provider)
                if produced:
                    raise
                err = _describe(spec, exc)
                logger.warning("FallbackChain.stream | provider failed — %s", err)
                errors.append(err)

        raise ProvidersExhaustedError("stream", errors)

    # -----------------------------------------------------------------------
    # Embeddings
    # -----------------------------------------------------------------------

    async def aembed(self, text: str) -> list[float]:
        """Embed one string with the first embedding-capable provider that succeeds."""
        errors: list[str] = []

        for spec in self._candidates(embeddings=True):
            try:
                embedder = self._factory.build_embeddings(spec)
                vector = await asyncio.wait_for(
                    embedder.aembed_query(text),
                    timeout=self._per_attempt_timeout,
                )
                _record_success(spec.provider)
                return [float(v) for v in vector]

            except asyncio.TimeoutError:
                err = f"{spec}: embedding timed out after {self._per_attempt_timeout}s"
                logger.warning("FallbackChain.embed | %s", err)
                _record_failure(spec.provider)
                errors.append(err)

            except Exception as exc:
                err = _describe(spec, exc)
                logger.warning("FallbackChain.embed | provider failed — %s", err)
                _record_failure(spec.provider)
                errors.append(err)

        raise ProvidersExhaustedError("embed", errors)


def _content_text(content) -> str:
    """Normalise LangChain message content (str or list of parts) to text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(part.get("text", ""))
        return "".join(parts)
    return str(content or "")
