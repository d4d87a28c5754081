"""
Agent run — Pydantic Request/Response Schemas

POST /api/v1/agent/run?req_id=<id>
  body     RunRequest
  response RunResponse (the same RunResult is also sent on the SSE channel
           of <id> as the RESULT_READY event)

Request fields accept both snake_case and the camelCase names browser
clients send (resumeFileName, candidateEmail, fileUrl).
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RunRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message:          str        = Field("", description="User chat message (required, non-blank)")
    resume_file_name: str | None = Field(None, alias="resumeFileName")
    candidate_email:  str | None = Field(None, alias="candidateEmail")
    file_url:         str | None = Field(None, alias="fileUrl")


class ResultKind(str, Enum):
    ANSWER = "answer"
    OFFER  = "offer"
    CHART  = "chart"


class RunResult(BaseModel):
    """
    Exactly one payload group is populated, matching `kind`:
      answer → answer
      offer  → offer_html, candidate_name, candidate_email
      chart  → chart, insights
    `error` may accompany any kind as a non-fatal note.
    """
    kind:            ResultKind
    answer:          str | None = None
    offer_html:      str | None = None
    candidate_name:  str | None = None
    candidate_email: str | None = None
    chart:           dict[str, Any] | None = None
    insights:        str | None = None
    error:           str | None = None


class RunResponse(BaseModel):
    status:     str = "ok"
    request_id: str | None = None
    result:     RunResult
