"""
Shared plumbing for the API Gateway Lambda handlers.

:func:`api_handler` turns a plain ``(body, correlation_id) -> dict`` function
into a Lambda entry point: it answers CORS preflight requests, decodes and
parses the JSON body, maps :class:`~screening.errors.ScreeningError` to an
error response and attaches CORS headers to every answer.
"""

from __future__ import annotations

import base64
import functools
import json
import logging
import uuid
from typing import Any, Callable, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from screening.errors import BadRequest, ScreeningError
from screening.logging_config import configure_logging
from screening.schemas import ErrorResponse
from screening.settings import get_settings

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any], str], Dict[str, Any]]
ModelT = TypeVar("ModelT", bound=BaseModel)


def request_method(event: Dict[str, Any]) -> str:
    # REST APIs (payload v1) and HTTP APIs (payload v2) put the method in different places
    http = (event.get("requestContext") or {}).get("http") or {}
    method = event.get("httpMethod") or http.get("method") or ""
    return method.upper()


def header(event: Dict[str, Any], name: str) -> Optional[str]:
    for key, value in (event.get("headers") or {}).items():
        if key.lower() == name.lower():
            return value
    return None


def correlation_id_for(event: Dict[str, Any], context: Any) -> str:
    return getattr(context, "aws_request_id", None) or header(event, "X-Request-ID") or uuid.uuid4().hex


def parse_body(event: Dict[str, Any]) -> Dict[str, Any]:
    """Decode the JSON object in the event body."""
    body = event.get("body")
    if body is None:
        raise BadRequest()
    try:
        if event.get("isBase64Encoded"):
            body = base64.b64decode(body).decode("utf-8")
        data = json.loads(body)
    except ValueError as exc:
        raise BadRequest("Request body is not valid JSON.") from exc
    if not isinstance(data, dict):
        raise BadRequest("Request body must be a JSON object.")
    return data


def validate(model: Type[ModelT], data: Dict[str, Any]) -> ModelT:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(part) for part in error["loc"]) for error in exc.errors())
        raise BadRequest(f"Invalid or missing fields: {fields}.") from exc


def cors_headers(origin: Optional[str], correlation_id: str) -> Dict[str, str]:
    headers = {
        "Content-Type": "application/json",
        "X-Correlation-ID": correlation_id,
    }
    # No origin when settings could not be loaded
    if origin:
        headers.update(
            {
                "Access-Control-Allow-Origin": origin,
                "Access-Control-Allow-Methods": "OPTIONS,POST",
                "Access-Control-Allow-Headers": "Content-Type,X-Request-ID",
                "Access-Control-Max-Age": "600",
                "Vary": "Origin",
            }
        )
    return headers


def json_response(
    status_code: int, payload: Optional[Dict[str, Any]], origin: Optional[str], correlation_id: str
) -> Dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": cors_headers(origin, correlation_id),
        "body": json.dumps(payload) if payload is not None else "",
    }


def error_response(exc: ScreeningError, origin: Optional[str], correlation_id: str) -> Dict[str, Any]:
    payload = ErrorResponse(error=exc.code, message=exc.message, correlation_id=correlation_id)
    return json_response(exc.status_code, payload.model_dump(by_alias=True), origin, correlation_id)


@functools.lru_cache(maxsize=1)
def _allowed_origin() -> str:
    settings = get_settings()
    configure_logging(settings.log_level)
    return settings.allowed_origin


def api_handler(func: Handler) -> Callable[[Dict[str, Any], Any], Dict[str, Any]]:
    """Wrap ``func`` as an API Gateway proxy handler."""

    @functools.wraps(func)
    def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
        correlation_id = correlation_id_for(event, context)
        origin = None
        try:
            origin = _allowed_origin()
            method = request_method(event)
            if method == "OPTIONS":
                return json_response(200, None, origin, correlation_id)
            logger.info("%s %s correlation_id=%s", method, func.__module__, correlation_id)
            payload = func(parse_body(event), correlation_id)
        except ScreeningError as exc:
            logger.info("%s failed with %s correlation_id=%s", func.__module__, exc.code, correlation_id)
            return error_response(exc, origin, correlation_id)
        except Exception:
            logger.exception("Unhandled error in %s correlation_id=%s", func.__module__, correlation_id)
            return error_response(ScreeningError(), origin, correlation_id)
        return json_response(200, payload, origin, correlation_id)

    return lambda_handler
