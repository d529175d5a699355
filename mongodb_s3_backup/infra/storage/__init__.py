"""Object storage adapters."""

from mongodb_s3_backup.infra.storage.s3 import S3Client

__all__ = ["S3Client"]
