"""Backup job settings."""

from __future__ import annotations

import tempfile
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .yaml_sources import create_backup_yaml_source


def _default_scratch_root() -> Path:
    return Path(tempfile.gettempdir()) / "mongodb_s3_backup"


class BackupSettings(BaseSettings):
    """Local scratch area and tooling used while a job runs.

    Environment variables use BACKUP_ prefix.
    Example: BACKUP_SCRATCH_ROOT="/var/tmp/mongodb_s3_backup"
             BACKUP_PRE_CLEAN=false
    """

    scratch_root: Path = Field(
        default_factory=_default_scratch_root,
        description="Directory holding the raw dump and the archive during a job",
    )
    tar_path: str = Field(default="tar", description="Path to tar binary")
    pre_clean: bool = Field(
        default=True,
        description="Remove stale dump/archive paths left by an interrupted run before starting",
    )

    model_config = SettingsConfigDict(
        env_prefix="BACKUP_",
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
            create_backup_yaml_source(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )
