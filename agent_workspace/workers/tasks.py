"""
Celery Tasks — Upload Post-Processing

Task: process_upload
  1. Re-extract and chunk the stored file
  2. Embed chunks in fixed windows (EMBEDDING_CONCURRENCY)
  3. Attach upload metadata and persist through the chunk store
  4. Delete the stored file when it is a PDF

The task itself never raises for pipeline faults; IngestionPipeline logs
them and reports 0 persisted units.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from celery import Task

from agent_workspace.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Async task helper
# Run async coroutines inside Celery's synchronous task context.
# ---------------------------------------------------------------------------

def run_async(coro):
    """Execute an async coroutine from a synchronous Celery task."""
    try:
        loop = asyncio.get_event_loop()
        if loop.is_running():
            import concurrent.futures
            with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
                future = pool.submit(asyncio.run, coro)
                return future.result()
        return loop.run_until_complete(coro)
    except RuntimeError:
        return asyncio.run(coro)


@celery_app.task(
    name="agent_workspace.workers.tasks.process_upload",
    bind=True,
    acks_late=True,
    reject_on_worker_lost=True,
    soft_time_limit=270,
    time_limit=330,
)
def process_upload(self: Task, *, job: dict[str, Any]) -> dict[str, Any]:
    return run_async(_process_upload_async(job))


async def _process_upload_async(payload: dict[str, Any]) -> dict[str, Any]:
    from agent_workspace.api.dependencies import build_pipeline
    from agent_workspace.services.ingestion import IngestJob

    job    = IngestJob.from_payload(payload)
    stored = await build_pipeline().run(job)
    logger.info("process_upload | file=%s stored=%d", job.stored_file_name, stored)
    return {"file_name": job.stored_file_name, "stored": stored}
