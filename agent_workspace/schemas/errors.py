"""
Structured error bodies shared by every route.

All 4xx/5xx responses use the ErrorResponse envelope; route handlers and
services build them through the factory classes below so the codes and
wording stay in one place.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from agent_workspace.core.config import settings


class ErrorDetail(BaseModel):
    """Single structured error — may appear in a list."""
    field:   str | None = Field(None, description="Request field that caused the error, if applicable")
    message: str
    code:    str         = Field(..., description="Machine-readable error code for client handling")


class ErrorResponse(BaseModel):
    """
    Uniform error envelope for all 4xx/5xx responses.
    Clients should check `error_code` for programmatic handling.
    """
    error_code: str               = Field(..., description="Stable machine-readable code")
    message:    str               = Field(..., description="Human-readable summary")
    details:    list[ErrorDetail] = Field(default_factory=list)
    request_id: str | None        = Field(None, description="Trace ID for log correlation")


# ---------------------------------------------------------------------------
# Pre-defined error factories (keeps route handlers thin)
# ---------------------------------------------------------------------------

class RunErrors:

    @staticmethod
    def message_required(request_id: str | None = None) -> ErrorResponse:
        return ErrorResponse(
            error_code="MESSAGE_REQUIRED",
            message="A non-empty message is required.",
            details=[
                ErrorDetail(
                    field="message",
                    message="The message must contain at least one non-whitespace character.",
                    code="MESSAGE_REQUIRED",
                )
            ],
            request_id=request_id,
        )


class UploadErrors:
    """Factories for every documented upload error case."""

    @staticmethod
    def unsupported_file_type(filename: str, detected_type: str) -> ErrorResponse:
        return ErrorResponse(
            error_code="UNSUPPORTED_FILE_TYPE",
            message=f"File type '{detected_type}' is not supported.",
            details=[
                ErrorDetail(
                    field="file",
                    message=f"'{filename}' has an unsupported type '{detected_type}'. Allowed: PDF, CSV.",
                    code="UNSUPPORTED_FILE_TYPE",
                )
            ],
        )

    @staticmethod
    def file_too_large(size_bytes: int, limit_bytes: int | None = None) -> ErrorResponse:
        limit_bytes = limit_bytes or settings.max_upload_bytes
        return ErrorResponse(
            error_code="FILE_TOO_LARGE",
            message=f"Uploaded file exceeds the {limit_bytes // (1024 * 1024)} MB limit.",
            details=[
                ErrorDetail(
                    field="file",
                    message=f"Received {size_bytes:,} bytes; limit is {limit_bytes:,} bytes.",
                    code="FILE_TOO_LARGE",
                )
            ],
        )

    @staticmethod
    def missing_file() -> ErrorResponse:
        return ErrorResponse(
            error_code="MISSING_FILE",
            message="No file was provided in the request.",
            details=[
                ErrorDetail(
                    field="file",
                    message="The 'file' multipart field is required.",
                    code="MISSING_FILE",
                )
            ],
        )

    @staticmethod
    def internal_error(request_id: str | None = None) -> ErrorResponse:
        return ErrorResponse(
            error_code="INTERNAL_ERROR",
            message="An unexpected error occurred. Our team has been notified.",
            details=[],
            request_id=request_id,
        )


# ---------------------------------------------------------------------------
# HTTP status code → error code mapping (for OpenAPI documentation)
# ---------------------------------------------------------------------------

HTTP_ERROR_MAP: dict[int, str] = {
    400: "MESSAGE_REQUIRED",       # also MISSING_FILE, UNSUPPORTED_FILE_TYPE
    413: "FILE_TOO_LARGE",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_ERROR",
}
