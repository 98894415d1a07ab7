"""
Error taxonomy for the image screening service.

Every failure a client can observe is a subclass of :class:`ScreeningError`
carrying a stable ``code``, the HTTP status it maps to and whether retrying
the same request may succeed.  Normalization errors form a separate branch:
they describe a model answer that could not be parsed and are converted to
:class:`UnusableModelOutput` before they leave the orchestrator.
"""

from __future__ import annotations

from typing import Optional


class ScreeningError(Exception):
    """Base class for errors surfaced to API clients."""

    code = "internal_error"
    status_code = 500
    retryable = False
    default_message = "An internal error occurred."

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequest(ScreeningError):
    code = "bad_request"
    status_code = 400
    default_message = "Request body is missing or malformed."


class UnsupportedMediaType(ScreeningError):
    code = "unsupported_media_type"
    status_code = 400
    default_message = "Only PNG, JPEG, GIF and WebP images can be uploaded."


class AnalysisError(ScreeningError):
    """Base class for failures of a single analysis request."""

    status_code = 502
    retryable = True


class InvalidObjectReference(AnalysisError):
    code = "invalid_object_reference"
    status_code = 400
    retryable = False
    default_message = "The referenced object is not an upload of this service."


class ObjectNotFound(AnalysisError):
    code = "object_not_found"
    default_message = "The uploaded image could not be found."


class ObjectStoreUnavailable(AnalysisError):
    code = "object_store_unavailable"
    default_message = "The uploaded image could not be read."


class InferenceUnavailable(AnalysisError):
    code = "inference_unavailable"
    status_code = 503
    default_message = "The analysis model is currently unavailable."


class InferenceTimeout(AnalysisError):
    code = "inference_timeout"
    status_code = 504
    default_message = "The analysis model did not answer in time."


class UnusableModelOutput(AnalysisError):
    code = "unusable_model_output"
    default_message = "The analysis model returned an answer that could not be interpreted."


class NormalizationError(ValueError):
    """Raised when raw model text holds no usable JSON object."""


class NoStructuredOutput(NormalizationError):
    pass


class MalformedJson(NormalizationError):
    pass
