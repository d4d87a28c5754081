"""
In-memory chunk store.

Used when no DATABASE_URL is configured, and throughout the test suite.
Contents live for the lifetime of the process.
"""

from __future__ import annotations

import logging
import threading
from typing import Sequence

from agent_workspace.vectorstore.base import (
    ChunkStoreBase,
    ContextUnit,
    DurableRecord,
    VectorIndexUnavailable,
)

logger = logging.getLogger(__name__)


class InMemoryChunkStore(ChunkStoreBase):
    """Process-local store guarded by a lock; no vector index."""

    def __init__(self, sample_size: int = 1000) -> None:
        super().__init__(sample_size=sample_size)
        self._lock    = threading.Lock()
        self._units:   list[ContextUnit]  = []
        self._records: list[DurableRecord] = []

    @property
    def records(self) -> list[DurableRecord]:
        with self._lock:
            return list(self._records)

    async def persist_many(self, units: Sequence[ContextUnit]) -> int:
        with self._lock:
            self._units.extend(units)
        logger.debug("InMemoryChunkStore | stored=%d total=%d", len(units), len(self._units))
        return len(units)

    async def persist_record(self, record: DurableRecord) -> None:
        with self._lock:
            self._records.append(record)
        logger.info("InMemoryChunkStore | record kind=%s id=%s", record.kind, record.id)

    async def _select(
        self,
        document_name: str | None,
        exact:         bool,
        limit:         int,
    ) -> list[ContextUnit]:
        with self._lock:
            units = list(self._units)

        if document_name is not None:
            needle = document_name.lower()
            if exact:
                units = [u for u in units if (u.document_name or "").lower() == needle]
            else:
                units = [u for u in units if needle in (u.document_name or "").lower()]

        units.sort(key=lambda u: u.created_at, reverse=True)
        return units[:limit]

    async def _vector_search(self, vector: Sequence[float], limit: int) -> list[ContextUnit]:
        raise VectorIndexUnavailable("in-memory store has no vector index")

    async def _embedded_sample(self, size: int) -> list[ContextUnit]:
        with self._lock:
            embedded = [u for u in self._units if u.embedding]
        return embedded[:size]
