"""Runtime configuration read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .caffeine import DEFAULT_MODEL, DEFAULT_TIMEOUT_SECONDS
from .schema import DEFAULT_TABLE_NAME
from .storage import DEFAULT_BUCKET


@dataclass(frozen=True)
class Settings:
    """Configuration for one Lambda container or CLI invocation."""

    # DynamoDB
    table_name: str = DEFAULT_TABLE_NAME
    region: str = "us-east-1"
    dynamodb_endpoint: str | None = None

    # Photos
    s3_bucket: str = DEFAULT_BUCKET
    s3_region: str = "us-east-1"
    s3_endpoint: str | None = None

    # Caffeine estimator
    openai_api_key: str | None = None
    openai_model: str = DEFAULT_MODEL
    openai_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    @classmethod
    def from_environment(cls) -> Settings:
        """Create Settings from environment variables."""
        return cls(
            table_name=os.environ.get("TABLE_NAME", DEFAULT_TABLE_NAME),
            region=os.environ.get("AWS_REGION", "us-east-1"),
            dynamodb_endpoint=os.environ.get("DYNAMODB_ENDPOINT") or None,
            s3_bucket=os.environ.get("S3_BUCKET", DEFAULT_BUCKET),
            s3_region=os.environ.get("S3_REGION", "us-east-1"),
            s3_endpoint=os.environ.get("S3_ENDPOINT") or None,
            openai_api_key=os.environ.get("OPENAI_API_KEY") or None,
            openai_model=os.environ.get("OPENAI_MODEL", DEFAULT_MODEL),
            openai_timeout_seconds=float(
                os.environ.get("OPENAI_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT_SECONDS))
            ),
        )
