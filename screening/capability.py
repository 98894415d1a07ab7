"""
Upload capability issuance.

A capability is a presigned ``PutObject`` URL for exactly one object key under
the upload prefix.  Only image content types from an allow-list are accepted.
"""

from __future__ import annotations

import datetime as _dt
import logging
import re
import uuid
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Iterable, Optional

from screening.errors import UnsupportedMediaType
from screening.gateways import ObjectRef, S3ObjectStore

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPES = ("image/png", "image/jpeg", "image/gif", "image/webp")
MAX_NAME_LENGTH = 100

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


@dataclass(frozen=True)
class UploadCapability:
    url: str
    key: str
    bucket: str
    expires_at: _dt.datetime


def normalize_content_type(content_type: Optional[str]) -> str:
    """Lower-case MIME type without parameters, e.g. ``'image/png'``."""
    return (content_type or "").split(";")[0].strip().lower()


def sanitize_file_name(file_name: Optional[str]) -> str:
    # Windows paths arrive from browsers too
    name = PurePosixPath((file_name or "").replace("\\", "/")).name
    name = _UNSAFE_CHARS.sub("_", name)[:MAX_NAME_LENGTH].strip(".")
    return name or "upload"


class CapabilityIssuer:
    """Issues time-bounded upload URLs for image files."""

    def __init__(
        self,
        store: S3ObjectStore,
        bucket: str,
        prefix: str = "uploads/",
        expires_in: int = 300,
        allowed_content_types: Iterable[str] = DEFAULT_CONTENT_TYPES,
    ) -> None:
        self.store = store
        self.bucket = bucket
        self.prefix = prefix
        self.expires_in = expires_in
        self.allowed_content_types = frozenset(normalize_content_type(t) for t in allowed_content_types)

    def issue(self, file_name: str, content_type: str) -> UploadCapability:
        """Return an upload capability for ``file_name``.

        Raises :class:`UnsupportedMediaType` when ``content_type`` is not an
        allowed image type.  The URL is signed for ``content_type`` exactly as
        declared (minus surrounding whitespace), since the browser sends that
        value as the upload's ``Content-Type`` header.
        """
        mime_type = normalize_content_type(content_type)
        if mime_type not in self.allowed_content_types:
            raise UnsupportedMediaType(f"Content type {content_type!r} is not an accepted image type.")
        key = f"{self.prefix}{uuid.uuid4().hex}-{sanitize_file_name(file_name)}"
        ref = ObjectRef(bucket=self.bucket, key=key)
        url = self.store.issue_upload_url(ref, content_type.strip(), self.expires_in)
        expires_at = _dt.datetime.now(_dt.timezone.utc) + _dt.timedelta(seconds=self.expires_in)
        logger.info("Issued upload URL for %s (%s), expires %s", key, mime_type, expires_at.isoformat())
        return UploadCapability(url=url, key=key, bucket=self.bucket, expires_at=expires_at)
