"""
Agent API Router
  GET  /api/v1/agent/stream?req_id=<id>   Server-Sent Events progress channel
  POST /api/v1/agent/run?req_id=<id>      Synchronous run

A client opens the stream first, then posts the run with the same req_id.
Progress notes arrive on the stream while the POST is pending; the final
RunResult is both the POST response body and the stream's terminal
RESULT_READY event.

SSE format::

    event: connected
    data: {"req_id": "abc", "ts": 1700000000000}

    event: message
    data: {"text": "Planner: ...", "ts": 1700000000100}

    : keepalive

    event: message
    data: {"text": "RESULT_READY", "ts": 1700000000900, "result": {...}}

A run never depends on the stream: without a subscriber, progress is
dropped; a subscriber that disconnects only stops receiving events.
"""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Query, Request, status
from fastapi.responses import JSONResponse, StreamingResponse

from agent_workspace.agent.progress import sse_stream
from agent_workspace.api.dependencies import Registry, Runner
from agent_workspace.core.config import settings
from agent_workspace.schemas.agent import RunRequest, RunResponse
from agent_workspace.schemas.errors import ErrorResponse, RunErrors

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/agent", tags=["Agent"])


# ---------------------------------------------------------------------------
# GET /agent/stream
# ---------------------------------------------------------------------------

@router.get(
    "/stream",
    summary="Progress notes for one run (SSE)",
    description=(
        "Returns a Server-Sent Events stream. Events: 'connected', then 'message' "
        "events; the stream closes after the RESULT_READY message."
    ),
    response_class=StreamingResponse,
)
async def stream_progress(
    registry: Registry,
    req_id:   str = Query(..., min_length=1, description="Client-chosen request correlation id"),
) -> StreamingResponse:
    logger.info("AgentStream | stream requested req_id=%s", req_id)

    return StreamingResponse(
        sse_stream(registry, req_id, keepalive=settings.keepalive_seconds),
        media_type="text/event-stream",
        headers={
            "Cache-Control":     "no-cache",
            "Connection":        "keep-alive",
            "X-Accel-Buffering": "no",   # disable nginx buffering for SSE
        },
    )


# ---------------------------------------------------------------------------
# POST /agent/run
# ---------------------------------------------------------------------------

@router.post(
    "/run",
    response_model=RunResponse,
    summary="Run the agent for one message",
    responses={
        200: {"model": RunResponse},
        400: {"model": ErrorResponse, "description": "Empty or whitespace-only message"},
        422: {"model": ErrorResponse, "description": "Malformed request body"},
    },
)
async def run_agent(
    request: Request,
    body:    RunRequest,
    runner:  Runner,
    req_id:  str | None = Query(None, description="Correlates the run with an open stream"),
) -> JSONResponse:
    request_id = req_id or request.headers.get("X-Request-ID") or str(uuid.uuid4())

    if not body.message or not body.message.strip():
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=RunErrors.message_required(request_id).model_dump(mode="json"),
        )

    result = await runner.run(body, req_id=req_id)
    response = RunResponse(status="ok", request_id=request_id, result=result)
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=response.model_dump(mode="json"),
        headers={"X-Request-ID": request_id},
    )
