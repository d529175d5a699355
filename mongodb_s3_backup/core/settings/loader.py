"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the
process.

Testing:
    In tests, clear the cache to force reload:
    get_s3_settings.cache_clear()

    Or construct settings directly:
    settings = S3Settings(bucket="test-bucket")
"""

from __future__ import annotations

from functools import lru_cache

from .backup import BackupSettings
from .logs import LoggingSettings
from .mongodb import MongoDBSettings
from .s3 import S3Settings


@lru_cache(maxsize=1)
def get_mongodb_settings() -> MongoDBSettings:
    """Get cached MongoDB source settings.

    Returns:
        Validated and frozen MongoDBSettings instance.
    """
    return MongoDBSettings()


@lru_cache(maxsize=1)
def get_s3_settings() -> S3Settings:
    """Get cached S3 destination settings.

    Returns:
        Validated and frozen S3Settings instance.
    """
    return S3Settings()


@lru_cache(maxsize=1)
def get_backup_settings() -> BackupSettings:
    """Get cached backup job settings.

    Returns:
        Validated and frozen BackupSettings instance.
    """
    return BackupSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings.

    Returns:
        Validated and frozen LoggingSettings instance.
    """
    return LoggingSettings()


def clear_all_caches() -> None:
    """Drop every cached settings instance (used by tests and --config-dir)."""
    get_mongodb_settings.cache_clear()
    get_s3_settings.cache_clear()
    get_backup_settings.cache_clear()
    get_logging_settings.cache_clear()
