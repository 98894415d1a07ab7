"""Request and response bodies of the HTTP API."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field

from screening.verdict import MAX_HINTS, VerdictLabel


class PresignRequest(BaseModel):
    """Schema for upload URL requests."""

    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(..., alias="fileName", min_length=1, description="Name of the file to upload")
    file_type: str = Field(..., alias="fileType", min_length=1, description="Declared MIME type, e.g. image/png")


class PresignResponse(BaseModel):
    url: str
    key: str
    bucket: str


class AnalyzeRequest(BaseModel):
    """Schema for analysis requests; ``key`` comes from a previous presign call."""

    bucket: str = Field(..., min_length=1)
    key: str = Field(..., min_length=1)


class AnalyzeResponse(BaseModel):
    verdict: VerdictLabel
    confidence: float = Field(..., ge=0.0, le=1.0)
    hints: List[str] = Field(default_factory=list, max_length=MAX_HINTS)


class ErrorResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    error: str
    message: str
    correlation_id: str = Field(..., alias="correlationId")
