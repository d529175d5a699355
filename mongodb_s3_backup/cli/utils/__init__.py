"""CLI utilities for running async operations and formatting output."""

from mongodb_s3_backup.cli.utils.async_runner import coro
from mongodb_s3_backup.cli.utils.formatters import error, header, info, job_summary, success, warning

__all__ = [
    "coro",
    "error",
    "header",
    "info",
    "job_summary",
    "success",
    "warning",
]
