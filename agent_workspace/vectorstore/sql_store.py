"""
PostgreSQL chunk store (SQLAlchemy async).

Indexed similarity uses pgvector's cosine-distance operator on the JSONB
embedding cast to `vector`. Any failure there (extension missing, mixed
dimensions) surfaces as an exception and ChunkStoreBase.query() drops to
in-process ranking over a bounded sample.
"""

from __future__ import annotations

import json
import logging
from typing import Sequence

from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from agent_workspace.db.session import session_scope
from agent_workspace.models.chunks import AgentRecordRow, ChunkRow
from agent_workspace.vectorstore.base import (
    DOCUMENT_NAME_KEY,
    ChunkStoreBase,
    ChunkType,
    ContextUnit,
    DurableRecord,
)

logger = logging.getLogger(__name__)

_VECTOR_SEARCH_SQL = text(
    """
    SELECT id, text, chunk_type, meta, embedding, created_at,
           1 - ((embedding::text)::vector <=> CAST(:query AS vector)) AS score
    FROM chunks
    WHERE embedding IS NOT NULL
    ORDER BY (embedding::text)::vector <=> CAST(:query AS vector)
    LIMIT :limit
    """
)


def _to_unit(row, score: float | None = None) -> ContextUnit:
    try:
        chunk_type = ChunkType(row.chunk_type)
    except ValueError:
        chunk_type = ChunkType.TEXT
    return ContextUnit(
        id=str(row.id),
        text=row.text,
        chunk_type=chunk_type,
        meta=dict(row.meta or {}),
        embedding=list(row.embedding) if row.embedding else None,
        created_at=row.created_at,
        score=score,
    )


class SqlChunkStore(ChunkStoreBase):

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        sample_size:     int = 1000,
    ) -> None:
        super().__init__(sample_size=sample_size)
        self._session_factory = session_factory

    async def persist_many(self, units: Sequence[ContextUnit]) -> int:
        if not units:
            return 0
        async with session_scope(self._session_factory) as session:
            session.add_all([
                ChunkRow(
                    id=u.id,
                    text=u.text,
                    chunk_type=u.chunk_type.value,
                    meta=u.meta,
                    embedding=u.embedding,
                    created_at=u.created_at,
                )
                for u in units
            ])
        logger.info("SqlChunkStore | stored=%d", len(units))
        return len(units)

    async def persist_record(self, record: DurableRecord) -> None:
        async with session_scope(self._session_factory) as session:
            session.add(AgentRecordRow(
                id=record.id,
                kind=record.kind,
                text=record.text,
                meta=record.meta,
                created_at=record.created_at,
            ))
        logger.info("SqlChunkStore | record kind=%s id=%s", record.kind, record.id)

    async def _select(
        self,
        document_name: str | None,
        exact:         bool,
        limit:         int,
    ) -> list[ContextUnit]:
        stmt = select(ChunkRow).order_by(ChunkRow.created_at.desc()).limit(limit)
        if document_name is not None:
            stored_name = func.lower(ChunkRow.meta[DOCUMENT_NAME_KEY].astext)
            needle      = document_name.lower()
            if exact:
                stmt = stmt.where(stored_name == needle)
            else:
                # strpos avoids LIKE wildcards in file names ("_" is common)
                stmt = stmt.where(func.strpos(stored_name, needle) > 0)

        async with session_scope(self._session_factory) as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [_to_unit(r) for r in rows]

    async def _vector_search(self, vector: Sequence[float], limit: int) -> list[ContextUnit]:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                _VECTOR_SEARCH_SQL,
                {"query": json.dumps(list(vector)), "limit": limit},
            )
            rows = result.all()
        return [_to_unit(r, score=float(r.score)) for r in rows]

    async def _embedded_sample(self, size: int) -> list[ContextUnit]:
        stmt = (
            select(ChunkRow)
            .where(ChunkRow.embedding.is_not(None))
            .order_by(ChunkRow.created_at.desc())
            .limit(size)
        )
        async with session_scope(self._session_factory) as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [_to_unit(r) for r in rows]
