"""
Upload Ingestion Service

Synchronous part (inside the request):
  1. Read the upload with a hard size ceiling (400 missing / 413 too large)
  2. Detect the kind from magic bytes, content type, then extension (PDF or CSV only)
  3. Store under uploads_dir as <timestamp>-<sanitized name>
  4. Extract content and chunk it so the response can report the chunk count
  5. Register CSV uploads in the file-mapping store
  6. Hand the job to the TaskPublisher and return immediately

Background part (IngestionPipeline, inline asyncio task or Celery worker):
  embed in fixed windows → attach upload metadata → persist → delete PDFs

Background faults are logged and never reach a client that already got
its acknowledgement.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from fastapi import HTTPException, UploadFile, status

from agent_workspace.core.config import settings
from agent_workspace.llm.gateway import GenerationGateway
from agent_workspace.processing.chunking import Chunker
from agent_workspace.processing.embeddings import EmbeddingPipeline
from agent_workspace.processing.extractor import ContentExtractor, DocumentKind, detect_kind
from agent_workspace.schemas.errors import UploadErrors
from agent_workspace.schemas.uploads import UploadResponse
from agent_workspace.services.file_mapping import FileMapping, FileMappingStore
from agent_workspace.vectorstore.base import DOCUMENT_NAME_KEY, ChunkStoreBase, ContextUnit

logger = logging.getLogger(__name__)

_HEAD_BYTES = 8


def _sanitize_filename(filename: str) -> str:
    """
    Strip path components and replace unsafe characters.
    Returns only the basename with OS-safe characters.
    """
    basename = filename.replace("\\", "/").rsplit("/", 1)[-1]
    safe = re.sub(r"[^a-zA-Z0-9._\-]", "_", basename)
    return safe[:200]


def _write_file(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


# ---------------------------------------------------------------------------
# Background job
# ---------------------------------------------------------------------------

@dataclass
class IngestJob:
    """Everything the background pipeline needs; JSON-serialisable for Celery."""
    file_path:        str
    original_name:    str
    stored_file_name: str
    kind:             str
    uploaded_at:      str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_payload(self) -> dict:
        return asdict(self)

    @classmethod
    def from_payload(cls, payload: dict) -> "IngestJob":
        return cls(**payload)


class IngestionPipeline:
    """
    Embeds and persists the units of one upload.

    When units are not supplied (Celery path) the stored file is extracted
    and chunked again inside the worker.
    """

    def __init__(
        self,
        gateway:     GenerationGateway,
        store:       ChunkStoreBase,
        window_size: int | None = None,
        extractor:   ContentExtractor | None = None,
        chunker:     Chunker | None = None,
    ) -> None:
        self._embedder  = EmbeddingPipeline(gateway, window_size or settings.embedding_concurrency)
        self._store     = store
        self._extractor = extractor or ContentExtractor()
        self._chunker   = chunker or Chunker()

    async def run(self, job: IngestJob, units: list[ContextUnit] | None = None) -> int:
        """Returns the number of units persisted; 0 on failure."""
        kind = DocumentKind(job.kind)
        try:
            if units is None:
                units = await self._load_units(job, kind)

            result = await self._embedder.embed_units(units)
            tagged = [
                u.with_meta(**{
                    DOCUMENT_NAME_KEY:    job.original_name,
                    "uploaded_file_name": job.stored_file_name,
                    "file_type":          kind.value,
                    "uploaded_at":        job.uploaded_at,
                })
                for u in result.units
            ]
            stored = await self._store.persist_many(tagged)
            logger.info(
                "IngestionPipeline done | file=%s units=%d failed_embeddings=%d",
                job.stored_file_name, stored, len(result.failed_units),
            )
            return stored
        except Exception:
            logger.exception("IngestionPipeline failed | file=%s", job.stored_file_name)
            return 0
        finally:
            if kind == DocumentKind.PDF:
                try:
                    Path(job.file_path).unlink(missing_ok=True)
                except OSError as exc:
                    logger.warning("IngestionPipeline | could not delete %s: %s", job.file_path, exc)

    async def _load_units(self, job: IngestJob, kind: DocumentKind) -> list[ContextUnit]:
        loop = asyncio.get_event_loop()
        data = await loop.run_in_executor(None, Path(job.file_path).read_bytes)
        extraction = await self._extractor.extract(data, kind)
        return self._chunker.chunk(extraction)


# ---------------------------------------------------------------------------
# Task publisher — inline asyncio task or Celery .apply_async()
# Injected into IngestionService so it can be mocked in tests.
# ---------------------------------------------------------------------------

class TaskPublisher:

    def __init__(
        self,
        pipeline_factory: Callable[[], IngestionPipeline],
        backend:          str | None = None,
    ) -> None:
        self._pipeline_factory = pipeline_factory
        self._backend          = backend or settings.ingest_backend
        self._pending: set[asyncio.Task] = set()

    async def publish(self, job: IngestJob, units: list[ContextUnit]) -> None:
        if self._backend == "celery":
            await self._publish_celery(job)
            return

        task = asyncio.create_task(self._pipeline_factory().run(job, units))
        # Hold a reference until done; the loop only keeps weak ones
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        logger.info("Ingest task scheduled | backend=inline file=%s", job.stored_file_name)

    async def _publish_celery(self, job: IngestJob) -> None:
        from agent_workspace.workers.tasks import process_upload

        loop = asyncio.get_event_loop()
        await loop.run_in_executor(
            None,
            lambda: process_upload.apply_async(kwargs={"job": job.to_payload()}, countdown=1),
        )
        logger.info("Ingest task published | backend=celery file=%s", job.stored_file_name)

    async def drain(self) -> None:
        """Wait for inline tasks still running (shutdown and tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


# ---------------------------------------------------------------------------
# Upload orchestrator
# ---------------------------------------------------------------------------

class IngestionService:
    """
    Stateless per call; all collaborators are injected.
    """

    def __init__(
        self,
        mappings:    FileMappingStore,
        publisher:   TaskPublisher,
        uploads_dir: str | None = None,
        max_bytes:   int | None = None,
        extractor:   ContentExtractor | None = None,
        chunker:     Chunker | None = None,
    ) -> None:
        self._mappings    = mappings
        self._publisher   = publisher
        self._uploads_dir = Path(uploads_dir or settings.uploads_dir)
        self._max_bytes   = max_bytes or settings.max_upload_bytes
        self._extractor   = extractor or ContentExtractor()
        self._chunker     = chunker or Chunker()

    async def ingest(self, file: UploadFile | None) -> UploadResponse:
        """
        Raises HTTPException with a structured ErrorResponse for every
        rejected upload.
        """
        data          = await self._read_upload(file)
        original_name = file.filename or "upload"

        kind = detect_kind(original_name, file.content_type, data[:_HEAD_BYTES])
        if kind is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=UploadErrors.unsupported_file_type(
                    original_name, file.content_type or "unknown",
                ).model_dump(),
            )

        stored_name = f"{int(time.time() * 1000)}-{_sanitize_filename(original_name)}"
        stored_path = (self._uploads_dir / stored_name).resolve()

        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, _write_file, stored_path, data)

        extraction = await self._extractor.extract(data, kind)
        units      = self._chunker.chunk(extraction)

        if kind == DocumentKind.CSV:
            self._mappings.add(FileMapping(
                original_name=original_name,
                stored_path=str(stored_path),
                stored_file_name=stored_name,
            ))

        logger.info(
            "Upload accepted | file=%s kind=%s size=%d chunks=%d",
            stored_name, kind.value, len(data), len(units),
        )

        job = IngestJob(
            file_path=str(stored_path),
            original_name=original_name,
            stored_file_name=stored_name,
            kind=kind.value,
        )
        try:
            await self._publisher.publish(job, units)
        except Exception as exc:
            # Non-fatal: the file is stored and CSVs are already analysable
            logger.error("Failed to publish ingest task | file=%s error=%s", stored_name, exc)

        return UploadResponse(
            message=f"File '{original_name}' uploaded successfully.",
            chunks=len(units),
            file_path=str(stored_path),
            file_name=stored_name,
            original_name=original_name,
            file_kind=kind,
            processing=True,
        )

    async def _read_upload(self, file: UploadFile | None) -> bytes:
        if file is None or not file.filename:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=UploadErrors.missing_file().model_dump(),
            )

        data = await file.read()

        if not data:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=UploadErrors.missing_file().model_dump(),
            )

        if len(data) > self._max_bytes:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=UploadErrors.file_too_large(len(data), self._max_bytes).model_dump(),
            )

        return data
