"""S3 destination settings."""

from __future__ import annotations

import posixpath
from typing import Any

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ._sanitizers import sanitize_inline_numeric
from .yaml_sources import create_s3_yaml_source

DEFAULT_PART_SIZE = 10 * 1024 * 1024
MIN_PART_SIZE = 5 * 1024 * 1024


class S3Settings(BaseSettings):
    """Object storage destination for backup archives.

    Environment variables use S3_ prefix.
    Example: S3_BUCKET="my-backups"
             S3_DESTINATION="/mongodb/nightly"
             S3_ENCRYPT=true

    Works with AWS S3 and S3-compatible services (MinIO, LocalStack, etc.)
    through ``endpoint_url``.
    """

    access_key: SecretStr | None = Field(default=None, description="S3 access key ID")
    secret_key: SecretStr | None = Field(default=None, description="S3 secret access key")
    bucket: str | None = Field(default=None, description="Bucket receiving the archives")
    region: str = Field(default="us-east-1", description="AWS region for S3")
    endpoint_url: str | None = Field(
        default=None,
        description="Custom S3 endpoint URL (for MinIO, LocalStack, etc.)",
    )

    destination: str = Field(
        default="/",
        description="Key prefix inside the bucket; '/' uploads to the bucket root",
    )
    encrypt: bool = Field(
        default=False,
        description="Request AES256 server-side encryption for uploaded archives",
    )

    part_size: int = Field(
        default=DEFAULT_PART_SIZE,
        ge=MIN_PART_SIZE,
        description="Multipart upload part size in bytes",
    )
    max_retries: int = Field(
        default=2,
        ge=0,
        le=10,
        description="Retries per request/part performed by the storage client",
    )

    model_config = SettingsConfigDict(
        env_prefix="S3_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        populate_by_name=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        """Customize settings source precedence: init > yaml > env > dotenv > secrets."""
        return (
            init_settings,
            create_s3_yaml_source(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    @field_validator("part_size", "max_retries", mode="before")
    @classmethod
    def _normalize_numeric(cls, value: Any) -> Any:
        """Allow numeric env vars with inline comments."""
        return sanitize_inline_numeric(value)

    @property
    def is_configured(self) -> bool:
        """Check if a bucket is set.

        Credentials may be omitted, in which case the default AWS credential
        chain (instance profile, ``~/.aws``) applies.
        """
        return bool(self.bucket)

    def get_key(self, filename: str) -> str:
        """Get the object key for ``filename`` under the destination prefix."""
        return posixpath.join(self.destination or "/", filename).lstrip("/")

    def get_uri(self, key: str) -> str:
        return f"s3://{self.bucket}/{key}"
