"""
AWS Lambda handler for ``POST /presign``.

Returns a presigned S3 upload URL for one image file.  The browser uploads the
file directly to S3 with that URL and then calls ``POST /analyze`` with the
returned bucket and key.
"""

from __future__ import annotations

from typing import Any, Dict

from functions.responses import api_handler, validate
from screening.dependencies import get_issuer
from screening.schemas import PresignRequest, PresignResponse


@api_handler
def lambda_handler(body: Dict[str, Any], correlation_id: str) -> Dict[str, Any]:
    """Entry point for AWS Lambda."""
    request = validate(PresignRequest, body)
    capability = get_issuer().issue(request.file_name, request.file_type)
    return PresignResponse(url=capability.url, key=capability.key, bucket=capability.bucket).model_dump()
