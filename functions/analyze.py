"""
AWS Lambda handler for ``POST /analyze``.

Reads a previously uploaded image from S3, has the configured Bedrock model
screen it and returns the normalized verdict.
"""

from __future__ import annotations

from typing import Any, Dict

from functions.responses import api_handler, validate
from screening.dependencies import get_orchestrator
from screening.gateways import ObjectRef
from screening.schemas import AnalyzeRequest


@api_handler
def lambda_handler(body: Dict[str, Any], correlation_id: str) -> Dict[str, Any]:
    """Entry point for AWS Lambda."""
    request = validate(AnalyzeRequest, body)
    verdict = get_orchestrator().analyze(ObjectRef(bucket=request.bucket, key=request.key))
    return verdict.to_response()
