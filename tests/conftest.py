"""Pytest configuration and shared fixtures.

Organization:
    - Environment Fixtures: isolate settings from the host environment
    - Settings Fixtures: ready-made MongoDB/S3/backup settings
    - Job Fixtures: a BackupJob rooted in a temporary scratch directory
    - Utility Fixtures: fake executables for process tests
"""

from __future__ import annotations

import os
import stat
from datetime import UTC, datetime
from pathlib import Path

import pytest

from mongodb_s3_backup.backup.job import BackupJob
from mongodb_s3_backup.core.settings import (
    BackupSettings,
    MongoDBSettings,
    S3Settings,
    clear_all_caches,
)

_ISOLATED_PREFIXES = ("MONGODB_", "S3_", "BACKUP_", "LOG_")


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_settings_env(monkeypatch, tmp_path):
    """Keep host env vars and conf/ files out of settings under test.

    Points CONFIG_DIR at an empty directory and drops every variable
    using one of the settings prefixes.
    """
    for key in list(os.environ):
        if key.startswith(_ISOLATED_PREFIXES) or key == "CONFIG_DIR":
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("CONFIG_DIR", str(tmp_path / "no-conf"))
    clear_all_caches()
    yield
    clear_all_caches()


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture
def scratch_root(tmp_path) -> Path:
    """Scratch directory for one job."""
    return tmp_path / "scratch"


@pytest.fixture
def mongodb_settings() -> MongoDBSettings:
    return MongoDBSettings(db="orders", host="db.internal", port=27017)


@pytest.fixture
def s3_settings() -> S3Settings:
    return S3Settings(
        bucket="backups",
        access_key="test-access-key",
        secret_key="test-secret-key",
        destination="/mongodb",
    )


@pytest.fixture
def backup_settings(scratch_root) -> BackupSettings:
    return BackupSettings(scratch_root=scratch_root)


# ============================================================================
# Job Fixtures
# ============================================================================


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 1, 5, 12, 0, tzinfo=UTC)


@pytest.fixture
def job(mongodb_settings, s3_settings, scratch_root, fixed_now) -> BackupJob:
    """A job for the "orders" database with a deterministic archive name."""
    return BackupJob.create(mongodb_settings, s3_settings, scratch_root=scratch_root, now=fixed_now)


# ============================================================================
# Utility Fixtures
# ============================================================================


@pytest.fixture
def make_executable(tmp_path):
    """Factory writing a /bin/sh script and returning its path.

    Example:
        script = make_executable("fails", "echo boom >&2; exit 3")
    """

    def _make(name: str, body: str) -> Path:
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir(exist_ok=True)
        path = bin_dir / name
        path.write_text(f"#!/bin/sh\n{body}\n")
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return _make
