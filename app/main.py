"""
FastAPI application exposing the image screening API.

This module serves the same two operations as the Lambda handlers in
``functions/`` so the upload page can be developed against a local process:
``POST /presign`` issues an upload URL and ``POST /analyze`` screens an
uploaded image.  Run it with ``uvicorn app.main:app --reload``; set
``MOCK_INFERENCE=true`` to get canned verdicts without model access.

Errors are returned as ``{"error", "message", "correlationId"}`` bodies, the
same shape the Lambda handlers produce.
"""

from __future__ import annotations

import logging
import uuid
from typing import Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from screening.capability import CapabilityIssuer
from screening.dependencies import get_issuer, get_orchestrator
from screening.errors import ScreeningError
from screening.gateways import ObjectRef
from screening.logging_config import configure_logging
from screening.orchestrator import AnalysisOrchestrator
from screening.schemas import AnalyzeRequest, AnalyzeResponse, ErrorResponse, PresignRequest, PresignResponse
from screening.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def _error(status_code: int, code: str, message: str, request: Request) -> JSONResponse:
    body = ErrorResponse(error=code, message=message, correlation_id=request.state.correlation_id)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True),
        headers={"X-Correlation-ID": request.state.correlation_id},
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="Image Screening API", version="1.0")

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next):
        request.state.correlation_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Unhandled error in %s correlation_id=%s", request.url.path, request.state.correlation_id)
            return _error(500, ScreeningError.code, ScreeningError.default_message, request)
        response.headers.setdefault("X-Correlation-ID", request.state.correlation_id)
        return response

    # Added last so it wraps every response, including unhandled errors
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.allowed_origin],
        allow_methods=["OPTIONS", "POST"],
        allow_headers=["Content-Type", "X-Request-ID"],
        expose_headers=["X-Correlation-ID"],
    )

    @app.exception_handler(ScreeningError)
    async def screening_error_handler(request: Request, exc: ScreeningError) -> JSONResponse:
        logger.info("%s failed with %s correlation_id=%s", request.url.path, exc.code, request.state.correlation_id)
        return _error(exc.status_code, exc.code, exc.message, request)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(422, "validation_error", "Request validation failed.", request)

    @app.get("/")
    async def root() -> Dict[str, str]:
        return {"message": "Image screening service is running"}

    @app.post("/presign", response_model=PresignResponse)
    def presign(request: PresignRequest, issuer: CapabilityIssuer = Depends(get_issuer)) -> PresignResponse:
        """Issue a presigned upload URL for one image."""
        capability = issuer.issue(request.file_name, request.file_type)
        return PresignResponse(url=capability.url, key=capability.key, bucket=capability.bucket)

    @app.post("/analyze", response_model=AnalyzeResponse)
    def analyze(
        request: AnalyzeRequest,
        orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
    ) -> AnalyzeResponse:
        """Screen a previously uploaded image."""
        verdict = orchestrator.analyze(ObjectRef(bucket=request.bucket, key=request.key))
        return AnalyzeResponse(**verdict.to_response())

    return app


app = create_app()
