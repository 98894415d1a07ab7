"""
Runtime configuration.

Values come from environment variables (the Lambda function configuration in
production, a ``.env`` file for local runs).  Variable names match the field
names in upper case, e.g. ``UPLOAD_BUCKET``.
"""

from __future__ import annotations

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration for the presign and analyze operations."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", protected_namespaces=())

    upload_bucket: str = Field(..., description="Bucket receiving uploaded images")
    upload_prefix: str = Field("uploads/", description="Key prefix for every upload")
    aws_region: str = Field("us-east-1", description="Region of the bucket and the model")
    model_id: str = Field("amazon.nova-pro-v1:0", description="Bedrock model used for analysis")
    allowed_origin: str = Field(
        "http://localhost:5173",
        description="The single origin allowed to call the API from a browser",
    )
    allowed_content_types: List[str] = Field(
        default_factory=lambda: ["image/png", "image/jpeg", "image/gif", "image/webp"],
    )
    presign_expiry_seconds: int = Field(300, gt=0)
    fetch_timeout_seconds: float = Field(5.0, gt=0)
    inference_timeout_seconds: float = Field(30.0, gt=0)
    max_output_tokens: int = Field(512, gt=0)
    metrics_enabled: bool = True
    metrics_namespace: str = "ImageScreening"
    mock_inference: bool = Field(False, description="Answer with a canned verdict instead of calling the model")
    log_level: str = "INFO"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
