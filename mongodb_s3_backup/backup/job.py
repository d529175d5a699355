"""Backup job data model."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from mongodb_s3_backup.backup.naming import archive_name
from mongodb_s3_backup.core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from mongodb_s3_backup.core.exceptions import BackupError
    from mongodb_s3_backup.core.settings import MongoDBSettings, S3Settings


class JobState(str, Enum):
    """States a backup job moves through."""

    PRE_CLEAN = "pre_clean"
    DUMP = "dump"
    COMPRESS = "compress"
    UPLOAD = "upload"
    POST_CLEAN = "post_clean"
    DONE = "done"
    ABORTED = "aborted"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Stage:
    """One ordered unit of pipeline work."""

    name: JobState
    label: str
    work: Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class CleanupSet:
    """Paths removed at the end of every job, whatever the outcome."""

    paths: tuple[Path, ...]

    def __iter__(self) -> Iterator[Path]:
        return iter(self.paths)

    def __len__(self) -> int:
        return len(self.paths)


@dataclass(frozen=True)
class BackupJob:
    """The unit of work for one invocation.

    Build with :meth:`create`, which validates the settings and fixes the
    archive name for the lifetime of the job.
    """

    mongodb: MongoDBSettings
    s3: S3Settings
    archive_name: str
    scratch_root: Path

    @classmethod
    def create(
        cls,
        mongodb: MongoDBSettings,
        s3: S3Settings,
        scratch_root: Path,
        now: datetime | None = None,
    ) -> BackupJob:
        """Create a job, generating its archive name.

        Raises:
            ConfigurationError: If no database or bucket is configured.
        """
        if not mongodb.is_configured:
            msg = "No database to back up. Set MONGODB_DB or pass --db."
            raise ConfigurationError(msg)
        if not s3.is_configured:
            msg = "No destination bucket. Set S3_BUCKET or pass --bucket."
            raise ConfigurationError(msg)

        return cls(
            mongodb=mongodb,
            s3=s3,
            archive_name=archive_name(mongodb.db, now=now),
            scratch_root=Path(scratch_root),
        )

    @property
    def db(self) -> str:
        return self.mongodb.db

    @property
    def backup_dir(self) -> Path:
        """Directory mongodump writes the database into."""
        return self.scratch_root / self.db

    @property
    def archive_path(self) -> Path:
        return self.scratch_root / self.archive_name

    @property
    def destination_key(self) -> str:
        return self.s3.get_key(self.archive_name)

    @property
    def cleanup_set(self) -> CleanupSet:
        return CleanupSet(paths=(self.backup_dir, self.archive_path))


@dataclass
class BackupResult:
    """Outcome of a job delivered through the normal result channel.

    Carries at most one error: the first one encountered.
    """

    job: BackupJob
    error: BackupError | None = None
    states: list[JobState] = field(default_factory=list)
    s3_uri: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> None:
        """Raise the job's error, if any."""
        if self.error is not None:
            raise self.error

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": "success" if self.ok else "failed",
            "db": self.job.db,
            "archive_name": self.job.archive_name,
            "s3_uri": self.s3_uri,
            "error": self.error.message if self.error else None,
            "error_code": self.error.code if self.error else None,
            "states": [str(state) for state in self.states],
        }
