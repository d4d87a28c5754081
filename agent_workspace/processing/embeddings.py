"""
Embedding Pipeline  —  Windowed Embeddings via the Generation Gateway
══════════════════════════════════════════════════════════════════════

Design goals:
  • Bounded load: units are embedded in fixed-size windows; each window is
    awaited in full before the next one starts (default 5 concurrent calls)
  • Partial success: a unit whose embedding fails is kept without a vector
    and is still persisted, so metadata and recency lookups can find it
  • Provider fallback is inherited from GenerationGateway.embed()
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field

from agent_workspace.llm.gateway import GenerationGateway
from agent_workspace.vectorstore.base import ContextUnit

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SIZE = 5


@dataclass
class EmbeddingResult:
    """
    Output of one pipeline run.

    units         : input units, in order, with embeddings attached where successful
    failed_units  : indices of units that could not be embedded
    elapsed_ms    : total pipeline wall time
    """
    units:        list[ContextUnit]
    elapsed_ms:   float
    failed_units: list[int] = field(default_factory=list)

    @property
    def success_rate(self) -> float:
        if not self.units:
            return 1.0
        return (len(self.units) - len(self.failed_units)) / len(self.units)


class EmbeddingPipeline:
    """
    Usage:
        pipeline = EmbeddingPipeline(gateway, window_size=5)
        result   = await pipeline.embed_units(units)
    """

    def __init__(self, gateway: GenerationGateway, window_size: int = DEFAULT_WINDOW_SIZE) -> None:
        self._gateway     = gateway
        self._window_size = max(1, window_size)

    async def embed_units(self, units: list[ContextUnit]) -> EmbeddingResult:
        if not units:
            return EmbeddingResult(units=[], elapsed_ms=0.0)

        t0 = time.monotonic()
        embedded: list[ContextUnit] = []
        failed:   list[int] = []

        for start in range(0, len(units), self._window_size):
            window  = units[start : start + self._window_size]
            vectors = await asyncio.gather(
                *(self._gateway.embed(u.text) for u in window),
                return_exceptions=True,
            )
            for offset, (unit, vector) in enumerate(zip(window, vectors)):
                if isinstance(vector, Exception):
                    logger.warning(
                        "EmbeddingPipeline | unit=%d failed: %s", start + offset, vector,
                    )
                    failed.append(start + offset)
                    embedded.append(unit)
                else:
                    embedded.append(unit.with_embedding(vector))

        elapsed_ms = (time.monotonic() - t0) * 1000
        logger.info(
            "EmbeddingPipeline done | units=%d failed=%d window=%d elapsed_ms=%.0f",
            len(units), len(failed), self._window_size, elapsed_ms,
        )
        return EmbeddingResult(units=embedded, elapsed_ms=elapsed_ms, failed_units=failed)
