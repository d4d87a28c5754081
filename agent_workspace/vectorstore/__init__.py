from agent_workspace.vectorstore.base import (
    ChunkStoreBase,
    ChunkType,
    ContextUnit,
    DurableRecord,
    cosine_similarity,
)
from agent_workspace.vectorstore.factory import get_chunk_store

__all__ = [
    "ChunkStoreBase",
    "ChunkType",
    "ContextUnit",
    "DurableRecord",
    "cosine_similarity",
    "get_chunk_store",
]
