"""
Construction of the service objects from :class:`~screening.settings.Settings`.

Each factory is cached so a warm Lambda container or a running API process
reuses its boto3 clients across requests.  Tests call ``cache_clear()`` on the
factories (see :func:`reset`) or bypass them entirely.
"""

from __future__ import annotations

from functools import lru_cache

import boto3
from botocore.config import Config

from screening.capability import CapabilityIssuer
from screening.gateways import BedrockInference, S3ObjectStore, StaticInference
from screening.metrics import CloudWatchMetrics, NullMetrics
from screening.orchestrator import AnalysisOrchestrator
from screening.settings import Settings, get_settings


def _client_config(settings: Settings, timeout: float) -> Config:
    return Config(
        region_name=settings.aws_region,
        connect_timeout=timeout,
        read_timeout=timeout,
        retries={"total_max_attempts": 1, "mode": "standard"},
    )


@lru_cache(maxsize=1)
def get_object_store() -> S3ObjectStore:
    settings = get_settings()
    config = _client_config(settings, settings.fetch_timeout_seconds).merge(Config(signature_version="s3v4"))
    return S3ObjectStore(boto3.client("s3", config=config))


@lru_cache(maxsize=1)
def get_issuer() -> CapabilityIssuer:
    settings = get_settings()
    return CapabilityIssuer(
        get_object_store(),
        bucket=settings.upload_bucket,
        prefix=settings.upload_prefix,
        expires_in=settings.presign_expiry_seconds,
        allowed_content_types=settings.allowed_content_types,
    )


@lru_cache(maxsize=1)
def get_orchestrator() -> AnalysisOrchestrator:
    settings = get_settings()
    if settings.mock_inference:
        inference = StaticInference()
    else:
        client = boto3.client("bedrock-runtime", config=_client_config(settings, settings.inference_timeout_seconds))
        inference = BedrockInference(client, settings.model_id, max_tokens=settings.max_output_tokens)
    if settings.metrics_enabled:
        metrics = CloudWatchMetrics(
            boto3.client("cloudwatch", config=_client_config(settings, settings.fetch_timeout_seconds)),
            settings.metrics_namespace,
        )
    else:
        metrics = NullMetrics()
    return AnalysisOrchestrator(
        get_object_store(),
        inference,
        metrics=metrics,
        bucket=settings.upload_bucket,
        prefix=settings.upload_prefix,
    )


def reset() -> None:
    """Drop every cached object so the next call re-reads the environment."""
    for factory in (get_settings, get_object_store, get_issuer, get_orchestrator):
        factory.cache_clear()
