"""
Unit Tests — Celery upload task
════════════════════════════════
The task body is exercised directly (no broker, no worker process).
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from agent_workspace.services.ingestion import IngestJob


@pytest.mark.unit
@pytest.mark.ingestion
class TestProcessUploadTask:

    async def test_task_body_runs_pipeline_for_payload(self):
        from agent_workspace.workers.tasks import _process_upload_async

        pipeline = MagicMock()
        pipeline.run = AsyncMock(return_value=4)
        job = IngestJob("/srv/uploads/1-cv.pdf", "cv.pdf", "1-cv.pdf", "pdf", "2026-01-01T00:00:00+00:00")

        with patch("agent_workspace.api.dependencies.build_pipeline", return_value=pipeline):
            result = await _process_upload_async(job.to_payload())

        assert result == {"file_name": "1-cv.pdf", "stored": 4}
        pipeline.run.assert_awaited_once_with(job)

    def test_task_is_routed_to_ingest_queue(self):
        from agent_workspace.workers.celery_app import TASK_ROUTES, celery_app

        assert TASK_ROUTES["agent_workspace.workers.tasks.process_upload"] == {"queue": "uploads.ingest"}
        assert celery_app.conf.task_serializer == "json"

    def test_file_of_reads_job_payload(self):
        from agent_workspace.workers.celery_app import _file_of

        assert _file_of({"job": {"stored_file_name": "1-a.csv"}}) == "1-a.csv"
        assert _file_of(None) == "?"
