"""
Celery Application Factory

Optional backend for upload post-processing (INGEST_BACKEND=celery).
With the default in-memory broker the worker only sees tasks published
from the same process; point CELERY_BROKER_URL at Redis or RabbitMQ to
run separate workers.

Queue topology:
  uploads.ingest   — embed and persist the chunks of one upload

Task payloads carry file paths, never file bytes; the worker reads the
stored file itself.
"""

from __future__ import annotations

import logging

from celery import Celery
from celery.signals import task_failure, task_postrun, task_prerun
from kombu import Exchange, Queue

from agent_workspace.core.config import settings

logger = logging.getLogger(__name__)

INGEST_EXCHANGE = Exchange("uploads", type="direct", durable=True)

TASK_QUEUES = (
    Queue(
        "uploads.ingest",
        exchange=INGEST_EXCHANGE,
        routing_key="uploads.ingest",
        durable=True,
    ),
)

TASK_ROUTES = {
    "agent_workspace.workers.tasks.process_upload": {"queue": "uploads.ingest"},
}


def create_celery_app() -> Celery:
    app = Celery("agent_workspace")

    app.conf.update(
        # --- Broker / Backend ---
        broker_url=settings.celery_broker_url,
        result_backend=settings.celery_result_backend,

        # --- Serialization (reject non-JSON messages) ---
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],

        # --- Queues ---
        task_queues=TASK_QUEUES,
        task_routes=TASK_ROUTES,
        task_default_queue="uploads.ingest",

        # --- Reliability ---
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        worker_prefetch_multiplier=1,

        # --- Timeouts ---
        task_soft_time_limit=300,
        task_time_limit=360,

        result_expires=3600,
        timezone="UTC",
        enable_utc=True,
        worker_max_tasks_per_child=200,
    )

    app.autodiscover_tasks(["agent_workspace.workers"])
    return app


celery_app = create_celery_app()


# ---------------------------------------------------------------------------
# Celery signals — structured task logging
# ---------------------------------------------------------------------------

def _file_of(kwargs: dict | None) -> str:
    job = (kwargs or {}).get("job") or {}
    return job.get("stored_file_name", "?")


@task_prerun.connect
def on_task_prerun(task_id, task, args, kwargs, **_):
    logger.info("Task start | task_id=%s task=%s file=%s", task_id, task.name, _file_of(kwargs))


@task_postrun.connect
def on_task_postrun(task_id, task, args, kwargs, retval, state, **_):
    logger.info(
        "Task end | task_id=%s task=%s state=%s file=%s",
        task_id, task.name, state, _file_of(kwargs),
    )


@task_failure.connect
def on_task_failure(task_id, exception, args, kwargs, traceback, einfo, **_):
    logger.error(
        "Task failed | task_id=%s file=%s error=%s",
        task_id, _file_of(kwargs), exception,
        exc_info=True,
    )
