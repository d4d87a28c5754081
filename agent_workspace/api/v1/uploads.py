"""
Upload API Router
POST /api/v1/uploads

Accepts one PDF or CSV file as multipart form field `file` and answers as
soon as it is stored and chunked. Embedding and persistence run in the
background (see services/ingestion.py).
"""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, File, HTTPException, Request, UploadFile, status
from fastapi.responses import JSONResponse

from agent_workspace.api.dependencies import Ingestion
from agent_workspace.core.config import settings
from agent_workspace.schemas.errors import ErrorResponse, UploadErrors
from agent_workspace.schemas.uploads import UploadResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/uploads", tags=["Uploads"])


@router.post(
    "",
    response_model=UploadResponse,
    summary="Upload a resume (PDF) or dataset (CSV)",
    responses={
        200: {"model": UploadResponse, "description": "File stored; background processing started"},
        400: {"model": ErrorResponse, "description": "Missing file or unsupported type"},
        413: {"model": ErrorResponse, "description": "File exceeds the size limit"},
        500: {"model": ErrorResponse, "description": "Internal server error"},
    },
)
async def upload_file(
    request: Request,
    service: Ingestion,
    file:    UploadFile | None = File(None, description="PDF or CSV file"),
) -> JSONResponse:
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

    if file is None:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=UploadErrors.missing_file().model_dump(mode="json"),
        )

    # Guard: reject oversized requests before reading the body
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > settings.max_upload_bytes + 4096:
        return JSONResponse(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            content=UploadErrors.file_too_large(int(content_length)).model_dump(mode="json"),
        )

    try:
        result = await service.ingest(file)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Unhandled upload error | request_id=%s", request_id)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=UploadErrors.internal_error(request_id).model_dump(mode="json"),
            headers={"X-Request-ID": request_id},
        )

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=result.model_dump(mode="json"),
        headers={"X-Request-ID": request_id},
    )
