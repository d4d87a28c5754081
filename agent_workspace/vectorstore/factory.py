"""
Chunk Store Factory

Selects the backend from configuration: PostgreSQL when DATABASE_URL is
set, otherwise the process-local in-memory store. The rest of the app only
calls get_chunk_store(); it never touches the concrete classes directly.
"""

from __future__ import annotations

import logging

from agent_workspace.core.config import Settings, settings
from agent_workspace.vectorstore.base import ChunkStoreBase

logger = logging.getLogger(__name__)


def get_chunk_store(cfg: Settings | None = None) -> ChunkStoreBase:
    """
    Build the chunk store for the configured backend.
    A missing DATABASE_URL is not an error: runs degrade to a store that
    lives only as long as the process.
    """
    cfg = cfg or settings

    if cfg.store_configured:
        from agent_workspace.db.session import get_session_factory
        from agent_workspace.vectorstore.sql_store import SqlChunkStore

        logger.info("Chunk store | backend=postgresql")
        return SqlChunkStore(
            session_factory=get_session_factory(),
            sample_size=cfg.retrieval_sample_size,
        )

    from agent_workspace.vectorstore.memory_store import InMemoryChunkStore

    logger.warning(
        "Chunk store | DATABASE_URL not set, using in-memory store (nothing is persisted)"
    )
    return InMemoryChunkStore(sample_size=cfg.retrieval_sample_size)
