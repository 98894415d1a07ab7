"""
Adapters for the two external services the analysis depends on.

``S3ObjectStore`` issues presigned upload URLs and reads uploaded images back;
``BedrockInference`` sends an image and an instruction prompt to a multimodal
model through the Bedrock Converse API.  Both translate ``botocore`` failures
into the error taxonomy of :mod:`screening.errors` so that callers never see a
raw AWS exception.

The boto3 clients are passed in, which keeps the adapters free of global
state and lets tests substitute simple fakes.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List

from botocore.exceptions import BotoCoreError, ClientError, ConnectTimeoutError, ReadTimeoutError

from screening.errors import (
    InferenceTimeout,
    InferenceUnavailable,
    ObjectNotFound,
    ObjectStoreUnavailable,
    UnsupportedMediaType,
)

logger = logging.getLogger(__name__)

# MIME type -> image format understood by the Converse API
IMAGE_FORMATS: Dict[str, str] = {
    "image/png": "png",
    "image/jpeg": "jpeg",
    "image/gif": "gif",
    "image/webp": "webp",
}

_MISSING_OBJECT_CODES = {"NoSuchKey", "NotFound", "404"}
_MODEL_TIMEOUT_CODES = {"ModelTimeoutException"}


@dataclass(frozen=True)
class ObjectRef:
    """Location of one uploaded object."""

    bucket: str
    key: str


@dataclass(frozen=True)
class StoredObject:
    data: bytes
    content_type: str


def _error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


class S3ObjectStore:
    """Object store gateway backed by Amazon S3."""

    def __init__(self, client: Any) -> None:
        self.client = client

    def issue_upload_url(self, ref: ObjectRef, content_type: str, expires_in: int) -> str:
        """Return a presigned ``PutObject`` URL bound to ``ref`` and ``content_type``."""
        try:
            return self.client.generate_presigned_url(
                "put_object",
                Params={"Bucket": ref.bucket, "Key": ref.key, "ContentType": content_type},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("Could not presign upload for %s/%s: %s", ref.bucket, ref.key, exc)
            raise ObjectStoreUnavailable("Could not create an upload URL.") from exc

    def fetch(self, ref: ObjectRef) -> StoredObject:
        """Read the object at ``ref`` into memory."""
        try:
            response = self.client.get_object(Bucket=ref.bucket, Key=ref.key)
            data = response["Body"].read()
        except ClientError as exc:
            if _error_code(exc) in _MISSING_OBJECT_CODES:
                raise ObjectNotFound() from exc
            logger.error("Reading %s/%s failed: %s", ref.bucket, ref.key, exc)
            raise ObjectStoreUnavailable() from exc
        except (ReadTimeoutError, ConnectTimeoutError) as exc:
            logger.error("Reading %s/%s timed out: %s", ref.bucket, ref.key, exc)
            raise ObjectStoreUnavailable("Reading the uploaded image timed out.") from exc
        except BotoCoreError as exc:
            logger.error("Reading %s/%s failed: %s", ref.bucket, ref.key, exc)
            raise ObjectStoreUnavailable() from exc
        content_type = response.get("ContentType") or "application/octet-stream"
        return StoredObject(data=data, content_type=content_type)


class BedrockInference:
    """Model inference gateway backed by the Bedrock Converse API."""

    def __init__(self, client: Any, model_id: str, max_tokens: int = 512, temperature: float = 0.0) -> None:
        self.client = client
        self.model_id = model_id
        self.max_tokens = max_tokens
        self.temperature = temperature

    def infer(self, image: bytes, mime_type: str, prompt: str) -> str:
        """Send ``image`` with ``prompt`` to the model and return its text answer."""
        image_format = IMAGE_FORMATS.get(mime_type.split(";")[0].strip().lower())
        if image_format is None:
            raise UnsupportedMediaType(f"Cannot analyze objects of type {mime_type!r}.")
        try:
            response = self.client.converse(
                modelId=self.model_id,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"image": {"format": image_format, "source": {"bytes": image}}},
                            {"text": prompt},
                        ],
                    }
                ],
                inferenceConfig={"maxTokens": self.max_tokens, "temperature": self.temperature},
            )
        except ClientError as exc:
            logger.error("Model %s call failed: %s", self.model_id, exc)
            if _error_code(exc) in _MODEL_TIMEOUT_CODES:
                raise InferenceTimeout() from exc
            raise InferenceUnavailable() from exc
        except (ReadTimeoutError, ConnectTimeoutError) as exc:
            logger.error("Model %s call timed out: %s", self.model_id, exc)
            raise InferenceTimeout() from exc
        except BotoCoreError as exc:
            logger.error("Model %s call failed: %s", self.model_id, exc)
            raise InferenceUnavailable() from exc
        return _response_text(response)


def _response_text(response: Dict[str, Any]) -> str:
    content: List[Dict[str, Any]] = response.get("output", {}).get("message", {}).get("content", [])
    return "".join(block.get("text", "") for block in content if isinstance(block, dict))


class StaticInference:
    """Inference gateway that always returns the same answer.

    Used for demos without model access and in tests.
    """

    DEFAULT_ANSWER = json.dumps(
        {
            "verdict": "LIKELY_REAL",
            "confidence": 0.5,
            "hints": ["Lighting consistent.", "No texture repetition.", "No tampering found."],
        }
    )

    def __init__(self, answer: str = DEFAULT_ANSWER) -> None:
        self.answer = answer

    def infer(self, image: bytes, mime_type: str, prompt: str) -> str:
        logger.info("Returning static answer for %d byte %s image", len(image), mime_type)
        return self.answer
