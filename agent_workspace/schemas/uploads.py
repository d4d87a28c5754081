"""
Upload — Pydantic Response Schema

POST /api/v1/uploads answers as soon as the file is stored, extracted and
chunked; embedding and persistence continue in the background, which is
what `processing: true` tells the client.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from agent_workspace.processing.extractor import DocumentKind


class UploadResponse(BaseModel):
    message:       str          = Field(..., description="Human-readable acknowledgement")
    chunks:        int          = Field(..., ge=0, description="Context units the file was split into")
    file_path:     str          = Field(..., description="Server-side storage path")
    file_name:     str          = Field(..., description="Stored file name (<timestamp>-<sanitized name>)")
    original_name: str          = Field(..., description="File name as uploaded")
    file_kind:     DocumentKind
    processing:    bool         = Field(True, description="Background embedding still running")
