"""
SQLAlchemy ORM Models — Context Chunks & Agent Records

Using SQLAlchemy 2.x mapped classes for full async support.

Embeddings are stored as JSONB arrays so the schema works on plain
PostgreSQL. When the pgvector extension is installed, SqlChunkStore casts
the array to `vector` at query time for indexed cosine search; without it
the store falls back to in-process ranking.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Index, String, Text, func
from sqlalchemy import text as sql_text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Declarative base — shared across all models
# ---------------------------------------------------------------------------

class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# ChunkRow — chunks
# ---------------------------------------------------------------------------

class ChunkRow(Base):
    """
    One context unit extracted from an uploaded document.
    meta holds resume_file_name, uploaded_file_name, file_type, page/row origin.
    """

    __tablename__ = "chunks"
    __table_args__ = (
        Index("idx_chunks_created_at", "created_at"),
        Index("idx_chunks_document_name", sql_text("lower(meta->>'resume_file_name')")),
    )

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    chunk_type: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default="text",
        server_default="text",
    )
    meta: Mapped[dict] = mapped_column(
        JSONB,
        nullable=False,
        default=dict,
        server_default="{}",
    )
    # SQL NULL (not JSON 'null') for units whose embedding failed
    embedding: Mapped[Optional[list]] = mapped_column(JSONB(none_as_null=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<ChunkRow id={self.id} type={self.chunk_type} doc={self.meta.get('resume_file_name')!r}>"


# ---------------------------------------------------------------------------
# AgentRecordRow — agent_records
# ---------------------------------------------------------------------------

class AgentRecordRow(Base):
    """Durable record of a generated artifact (offer drafts)."""

    __tablename__ = "agent_records"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    meta: Mapped[dict] = mapped_column(
        JSONB,
        nullable=False,
        default=dict,
        server_default="{}",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
