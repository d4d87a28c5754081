"""
Composed FastAPI Dependencies

The single wiring point for the process: one generation gateway, one
chunk store, one file-mapping store, one progress registry and one task
publisher are created lazily and shared by every request. Route handlers
import from here and never build collaborators themselves.

Tests replace any of these through app.dependency_overrides.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from agent_workspace.agent.nodes import AgentDependencies
from agent_workspace.agent.progress import ProgressRegistry
from agent_workspace.agent.runner import AgentRunner
from agent_workspace.core.config import settings
from agent_workspace.llm.gateway import GenerationGateway
from agent_workspace.processing.contacts import ContactExtractor
from agent_workspace.services.answers import AnswerService
from agent_workspace.services.file_mapping import FileMappingStore
from agent_workspace.services.ingestion import IngestionPipeline, IngestionService, TaskPublisher
from agent_workspace.services.offers import OfferDrafter
from agent_workspace.services.tabular import TabularAnalyzer
from agent_workspace.vectorstore.base import ChunkStoreBase
from agent_workspace.vectorstore.factory import get_chunk_store

# ---------------------------------------------------------------------------
# Shared singletons
# ---------------------------------------------------------------------------

_gateway:   GenerationGateway | None = None
_store:     ChunkStoreBase | None = None
_mappings:  FileMappingStore | None = None
_registry:  ProgressRegistry | None = None
_publisher: TaskPublisher | None = None
_runner:    AgentRunner | None = None


def get_gateway() -> GenerationGateway:
    global _gateway
    if _gateway is None:
        _gateway = GenerationGateway()
    return _gateway


def get_store() -> ChunkStoreBase:
    global _store
    if _store is None:
        _store = get_chunk_store()
    return _store


def get_file_mappings() -> FileMappingStore:
    global _mappings
    if _mappings is None:
        _mappings = FileMappingStore()
    return _mappings


def get_registry() -> ProgressRegistry:
    global _registry
    if _registry is None:
        _registry = ProgressRegistry()
    return _registry


def build_pipeline() -> IngestionPipeline:
    return IngestionPipeline(
        gateway=get_gateway(),
        store=get_store(),
        window_size=settings.embedding_concurrency,
    )


def get_task_publisher() -> TaskPublisher:
    global _publisher
    if _publisher is None:
        _publisher = TaskPublisher(pipeline_factory=build_pipeline, backend=settings.ingest_backend)
    return _publisher


def build_agent_dependencies() -> AgentDependencies:
    gateway = get_gateway()
    return AgentDependencies(
        answers=AnswerService(gateway, settings.assistant_name),
        store=get_store(),
        gateway=gateway,
        mappings=get_file_mappings(),
        contacts=ContactExtractor(gateway),
        drafter=OfferDrafter(gateway, settings.company_name),
        analyzer=TabularAnalyzer(),
        uploads_dir=settings.uploads_dir,
    )


def get_runner() -> AgentRunner:
    global _runner
    if _runner is None:
        _runner = AgentRunner(build_agent_dependencies(), get_registry())
    return _runner


def get_ingestion_service() -> IngestionService:
    return IngestionService(
        mappings=get_file_mappings(),
        publisher=get_task_publisher(),
        uploads_dir=settings.uploads_dir,
        max_bytes=settings.max_upload_bytes,
    )


async def shutdown() -> None:
    """Wait for inline ingest tasks and close the store (application lifespan)."""
    if _publisher is not None:
        await _publisher.drain()
    if _store is not None:
        await _store.close()


# ---------------------------------------------------------------------------
# Type aliases for cleaner route signatures
# ---------------------------------------------------------------------------

Runner    = Annotated[AgentRunner,      Depends(get_runner)]
Registry  = Annotated[ProgressRegistry, Depends(get_registry)]
Ingestion = Annotated[IngestionService, Depends(get_ingestion_service)]
