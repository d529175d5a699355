"""Pydantic Settings v2 configuration.

One settings class per domain, each with its own environment prefix:
- MongoDBSettings (MONGODB_): the database being backed up
- S3Settings (S3_): the bucket receiving archives
- BackupSettings (BACKUP_): scratch directory and tooling
- LoggingSettings (LOG_): console/file logging

Configuration precedence (highest to lowest):
    1. init kwargs (CLI options, tests)
    2. YAML/conf.d files (conf/<domain>.yaml, conf/<domain>.d/*)
    3. Environment variables
    4. .env file
    5. secrets_dir
"""

from __future__ import annotations

from .backup import BackupSettings
from .loader import (
    clear_all_caches,
    get_backup_settings,
    get_logging_settings,
    get_mongodb_settings,
    get_s3_settings,
)
from .logs import LoggingSettings
from .mongodb import MongoDBSettings
from .s3 import S3Settings

__all__ = [
    "BackupSettings",
    "LoggingSettings",
    "MongoDBSettings",
    "S3Settings",
    "clear_all_caches",
    "get_backup_settings",
    "get_logging_settings",
    "get_mongodb_settings",
    "get_s3_settings",
]
