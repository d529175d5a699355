"""Logging configuration settings."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .yaml_sources import create_logging_yaml_source

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LoggingSettings(BaseSettings):
    """Console and file logging configuration.

    Environment variables use LOG_ prefix.
    Example: LOG_LEVEL=DEBUG, LOG_JSON=true, LOG_FILE_PATH=logs/backup.log.jsonl
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root logger level (DEBUG|INFO|WARNING|ERROR|CRITICAL)",
    )

    json_logs: bool = Field(
        default=False,
        alias="log_json",
        description="Emit JSON Lines on the console instead of colored text (env: LOG_JSON)",
    )

    colorize: bool | None = Field(
        default=None,
        description="Enable console colors. If None, auto-detect (respects NO_COLOR/FORCE_COLOR env vars).",
    )

    file_path: Path | None = Field(
        default=None,
        description="Path to a JSON Lines log file. None disables file logging.",
    )

    file_max_bytes: int = Field(
        default=10_485_760,
        ge=1024,
        description="Maximum log file size in bytes before rotation.",
    )

    file_backup_count: int = Field(
        default=5,
        ge=0,
        le=100,
        description="Number of rotated log files to keep.",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
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
            create_logging_yaml_source(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    def to_logging_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for :func:`configure_logging`."""
        return {
            "log_level": self.level,
            "json_logs": self.json_logs,
            "colorize": self.colorize,
            "file_path": self.file_path,
            "file_max_bytes": self.file_max_bytes,
            "file_backup_count": self.file_backup_count,
        }
