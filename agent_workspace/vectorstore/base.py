"""
Retrieval Index — Abstract Base

Every concrete chunk store (in-memory, PostgreSQL) implements this
interface. The agent only speaks this protocol, so backends are swappable
without touching node logic.

Query strategy (shared by all backends, implemented once in query()):

  recency_only=True  → partial, case-insensitive match on the document
                       name, newest first (no similarity ranking)
  vector given       → (a) indexed similarity search on the backend
                       (b) on error / no index: cosine over a bounded
                           sample of embedded chunks, ranked in-process
  otherwise / empty  → (c) exact document-name match, then partial match,
                           then most recent overall
"""

from __future__ import annotations

import logging
import math
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Sequence

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_SIZE = 1000

# Metadata key holding the user-facing document name of a chunk
DOCUMENT_NAME_KEY = "resume_file_name"


# ---------------------------------------------------------------------------
# Shared data types
# ---------------------------------------------------------------------------

class ChunkType(str, Enum):
    """Content class of a context unit."""
    TEXT  = "text"    # prose paragraph group
    TABLE = "table"   # table-like page
    CSV   = "csv"     # group of tabular rows


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ContextUnit:
    """
    A bounded span of source text plus structural metadata.

    meta carries origin details (page, spans_pages, start_row, end_row) and,
    once uploaded, the document name under DOCUMENT_NAME_KEY.
    embedding is None until the background pipeline has embedded the unit.
    score is set only on similarity-ranked query results.
    """
    text:       str
    chunk_type: ChunkType             = ChunkType.TEXT
    meta:       dict                  = field(default_factory=dict)
    embedding:  list[float] | None    = None
    id:         str                   = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime              = field(default_factory=_utcnow)
    score:      float | None          = None

    @property
    def document_name(self) -> str | None:
        return self.meta.get(DOCUMENT_NAME_KEY)

    def with_embedding(self, vector: list[float] | None) -> "ContextUnit":
        return replace(self, embedding=vector)

    def with_meta(self, **extra) -> "ContextUnit":
        return replace(self, meta={**self.meta, **extra})


@dataclass(frozen=True)
class DurableRecord:
    """A generated artifact persisted after a successful run (e.g. an offer draft)."""
    kind:       str
    text:       str
    meta:       dict     = field(default_factory=dict)
    id:         str      = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=_utcnow)


class VectorIndexUnavailable(RuntimeError):
    """The backend has no indexed similarity search; use the in-process path."""


# ---------------------------------------------------------------------------
# Similarity helpers
# ---------------------------------------------------------------------------

def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Dot product over the product of Euclidean norms.

    Vectors of different length, empty vectors, and zero vectors all score 0.
    """
    if not a or not b or len(a) != len(b):
        return 0.0
    dot    = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def rank_by_similarity(
    vector: Sequence[float],
    units:  Sequence[ContextUnit],
    limit:  int,
) -> list[ContextUnit]:
    """Score every embedded unit against `vector` and return the top `limit`."""
    scored = [
        replace(u, score=cosine_similarity(vector, u.embedding))
        for u in units
        if u.embedding
    ]
    scored.sort(key=lambda u: u.score, reverse=True)
    return scored[:limit]


# ---------------------------------------------------------------------------
# Abstract interface
# ---------------------------------------------------------------------------

class ChunkStoreBase(ABC):
    """
    Durable home of context units and generated records.

    Implementations provide the primitive lookups; the query strategy
    itself lives here so every backend degrades the same way.
    """

    def __init__(self, sample_size: int = DEFAULT_SAMPLE_SIZE) -> None:
        self._sample_size = sample_size

    async def query(
        self,
        vector:       Sequence[float] | None = None,
        text_filter:  str | None = None,
        limit:        int = 20,
        recency_only: bool = False,
    ) -> list[ContextUnit]:
        """Return up to `limit` context units, best match first."""
        if recency_only:
            return await self._select(text_filter, exact=False, limit=limit)

        if vector:
            try:
                hits = await self._vector_search(vector, limit)
                if hits:
                    return hits
            except VectorIndexUnavailable:
                logger.debug("%s | no vector index, ranking in-process", type(self).__name__)
            except Exception as exc:
                logger.warning(
                    "%s | indexed search failed, ranking in-process: %s",
                    type(self).__name__, exc,
                )

            sample = await self._embedded_sample(self._sample_size)
            ranked = rank_by_similarity(vector, sample, limit)
            if ranked:
                return ranked

        return await self._by_metadata(text_filter, limit)

    async def _by_metadata(self, text_filter: str | None, limit: int) -> list[ContextUnit]:
        if text_filter:
            exact = await self._select(text_filter, exact=True, limit=limit)
            if exact:
                return exact
            partial = await self._select(text_filter, exact=False, limit=limit)
            if partial:
                return partial
        return await self._select(None, exact=False, limit=limit)

    async def persist(self, unit: ContextUnit) -> None:
        await self.persist_many([unit])

    # -----------------------------------------------------------------------
    # Backend primitives
    # -----------------------------------------------------------------------

    @abstractmethod
    async def persist_many(self, units: Sequence[ContextUnit]) -> int:
        """Store context units; returns the number written."""

    @abstractmethod
    async def persist_record(self, record: DurableRecord) -> None:
        """Store a generated artifact record."""

    @abstractmethod
    async def _select(
        self,
        document_name: str | None,
        exact:         bool,
        limit:         int,
    ) -> list[ContextUnit]:
        """
        Newest-first units filtered by document name.
        exact=True  → case-insensitive equality
        exact=False → case-insensitive substring; None matches everything
        """

    @abstractmethod
    async def _vector_search(self, vector: Sequence[float], limit: int) -> list[ContextUnit]:
        """Indexed nearest-neighbour search. Raise VectorIndexUnavailable if none."""

    @abstractmethod
    async def _embedded_sample(self, size: int) -> list[ContextUnit]:
        """Up to `size` stored units that carry an embedding."""

    async def close(self) -> None:
        """Release backend resources. No-op by default."""
