"""S3-compatible object storage client for backup archives.

Uploads go through aioboto3's managed transfer, which switches to a
multipart upload for anything larger than one part. The part size and the
per-request retry count come from :class:`S3Settings`; the client's own
retry policy is the only retry applied to an upload.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import aioboto3
from boto3.s3.transfer import TransferConfig
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from mongodb_s3_backup.core.exceptions import ConfigurationError, UploadFailure

if TYPE_CHECKING:
    from pathlib import Path

    from mongodb_s3_backup.core.settings.s3 import S3Settings

logger = logging.getLogger(__name__)

SERVER_SIDE_ENCRYPTION = "AES256"
ARCHIVE_CONTENT_TYPE = "application/gzip"


class S3Client:
    """Async S3-compatible storage client.

    Example:
        from mongodb_s3_backup.core.settings import get_s3_settings

        client = S3Client(get_s3_settings())
        s3_uri = await client.upload_archive(
            local_path=Path("/tmp/mongodb_s3_backup/orders_2024_1_5_1704412800000.tar.gz"),
            key="mongodb/orders_2024_1_5_1704412800000.tar.gz",
        )
    """

    def __init__(self, settings: S3Settings, session: Any = None) -> None:
        """Initialize S3 client with settings.

        Args:
            settings: S3 destination settings.
            session: aioboto3 session to use; a new one is created if omitted.

        Raises:
            ConfigurationError: If no bucket is configured.
        """
        if not settings.is_configured:
            msg = "S3 is not configured. Set S3_BUCKET (and credentials unless using the AWS default chain)."
            raise ConfigurationError(msg)

        self.settings = settings
        self._session = session or aioboto3.Session()

    def _get_client_config(self) -> dict[str, Any]:
        """Keyword arguments for ``session.client("s3", ...)``."""
        config: dict[str, Any] = {
            "region_name": self.settings.region,
            "config": Config(
                retries={
                    # max_attempts counts the initial request
                    "max_attempts": self.settings.max_retries + 1,
                    "mode": "standard",
                },
            ),
        }

        if self.settings.access_key and self.settings.secret_key:
            config["aws_access_key_id"] = self.settings.access_key.get_secret_value()
            config["aws_secret_access_key"] = self.settings.secret_key.get_secret_value()

        if self.settings.endpoint_url:
            config["endpoint_url"] = self.settings.endpoint_url

        return config

    def _get_transfer_config(self) -> TransferConfig:
        """Fixed-size multipart transfer configuration."""
        return TransferConfig(
            multipart_threshold=self.settings.part_size,
            multipart_chunksize=self.settings.part_size,
        )

    def _get_extra_args(self) -> dict[str, str]:
        extra_args = {"ContentType": ARCHIVE_CONTENT_TYPE}
        if self.settings.encrypt:
            extra_args["ServerSideEncryption"] = SERVER_SIDE_ENCRYPTION
        return extra_args

    async def upload_archive(self, local_path: Path, key: str) -> str:
        """Upload an archive with a multipart upload.

        Args:
            local_path: Path to the local archive.
            key: Destination object key.

        Returns:
            S3 URI (s3://bucket/key).

        Raises:
            UploadFailure: If the storage client reports an error. The
                client's exception is kept as ``cause`` and chained.
        """
        logger.info(
            "Uploading archive to S3",
            extra={
                "local_path": str(local_path),
                "bucket": self.settings.bucket,
                "key": key,
                "part_size": self.settings.part_size,
                "encrypt": self.settings.encrypt,
            },
        )

        try:
            async with self._session.client("s3", **self._get_client_config()) as s3:
                await s3.upload_file(
                    str(local_path),
                    self.settings.bucket,
                    key,
                    ExtraArgs=self._get_extra_args(),
                    Config=self._get_transfer_config(),
                )
        except (ClientError, BotoCoreError, OSError) as e:
            logger.error(
                "Failed to upload archive to S3",
                extra={"key": key, "error": str(e)},
            )
            raise UploadFailure(e, key=key) from e

        s3_uri = self.settings.get_uri(key)
        logger.info(
            "Successfully uploaded to S3",
            extra={
                "s3_uri": s3_uri,
                "size_bytes": local_path.stat().st_size,
            },
        )
        return s3_uri
