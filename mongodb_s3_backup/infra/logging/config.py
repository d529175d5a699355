"""Logging configuration setup.

Uses ``logging.config.dictConfig`` with every handler on the root logger;
module loggers (``logging.getLogger(__name__)``) propagate up.

- Console: colored human-readable lines, or JSON Lines when ``json_logs``.
- File (optional): rotating JSON Lines file.

Handlers write synchronously. A job can end in a fatal escalation, and log
records emitted just before the process dies must not sit in a queue.
"""

from __future__ import annotations

import logging
import logging.config
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from mongodb_s3_backup.core.settings.logs import LoggingSettings

logger = logging.getLogger(__name__)
_LOGGING_INITIALIZED = False

SERVICE_NAME = "mongodb-s3-backup"


def setup_logging(
    log_settings: LoggingSettings | None = None,
    *,
    force: bool = False,
    **configure_kwargs: Any,
) -> None:
    """Ensure logging is configured once across entrypoints.

    Args:
        log_settings: Optional logging settings instance. If omitted, settings
            are loaded via get_logging_settings().
        force: Reconfigure logging even if it was already initialized.
        **configure_kwargs: Explicit overrides for configure_logging().
    """
    global _LOGGING_INITIALIZED

    if _LOGGING_INITIALIZED and not force:
        return

    settings_obj = log_settings
    if settings_obj is None:
        from mongodb_s3_backup.core.settings import get_logging_settings

        settings_obj = get_logging_settings()

    log_config = {**settings_obj.to_logging_kwargs(), **configure_kwargs}
    configure_logging(**log_config)
    _LOGGING_INITIALIZED = True


def configure_logging(
    log_level: str = "INFO",
    json_logs: bool = False,
    colorize: bool | None = None,
    colorize_message: bool = False,
    file_path: str | Path | None = None,
    file_max_bytes: int = 10 * 1024 * 1024,
    file_backup_count: int = 5,
    capture_warnings: bool = True,
) -> None:
    """Configure the root logger with dictConfig.

    Args:
        log_level: Root logger level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_logs: Emit JSON Lines on the console instead of colored text.
        colorize: Enable console colors. If None, auto-detect.
        colorize_message: Color the whole console line, not just the level.
        file_path: Path to a JSON Lines log file. None disables file logging.
        file_max_bytes: Maximum log file size before rotation.
        file_backup_count: Number of rotated log files to keep.
        capture_warnings: Forward Python warnings to logging system.

    Example:
        from mongodb_s3_backup.core.settings import get_logging_settings
        configure_logging(**get_logging_settings().to_logging_kwargs())
    """
    if capture_warnings:
        logging.captureWarnings(True)

    path = Path(file_path) if file_path else None
    if path:
        path.parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(
        build_logging_config(
            log_level=log_level,
            json_logs=json_logs,
            colorize=colorize,
            colorize_message=colorize_message,
            file_path=path,
            file_max_bytes=file_max_bytes,
            file_backup_count=file_backup_count,
        )
    )
    logger.debug(
        "Logging configured",
        extra={"log_level": log_level, "json_logs": json_logs, "file_path": str(path)},
    )


def build_logging_config(
    log_level: str,
    json_logs: bool,
    colorize: bool | None,
    colorize_message: bool,
    file_path: Path | None,
    file_max_bytes: int,
    file_backup_count: int,
) -> dict[str, Any]:
    """Build the dictConfig dictionary.

    Returns:
        Configuration dict accepted by ``logging.config.dictConfig``.
    """
    formatters: dict[str, Any] = {
        "json": {
            "()": "mongodb_s3_backup.infra.logging.formatters.JSONFormatter",
            "static": {"service": SERVICE_NAME},
        },
        "console": {
            "()": "mongodb_s3_backup.infra.logging.color_formatter.ColoredConsoleFormatter",
            "colorize": colorize,
            "colorize_message": colorize_message,
        },
    }

    handlers: dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stderr",
            "formatter": "json" if json_logs else "console",
        },
    }

    if file_path:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": str(file_path),
            "maxBytes": file_max_bytes,
            "backupCount": file_backup_count,
            "encoding": "utf-8",
            "formatter": "json",
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": formatters,
        "handlers": handlers,
        "loggers": {
            # botocore is chatty at INFO and DEBUG (credential lookups, retries)
            "botocore": {"level": "WARNING"},
            "aiobotocore": {"level": "WARNING"},
        },
        "root": {
            "level": log_level.upper(),
            "handlers": list(handlers),
        },
    }
