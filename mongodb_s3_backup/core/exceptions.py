"""Exception hierarchy for backup jobs.

Every failure a job can report derives from :class:`BackupError`, so callers
can catch the whole family at once. The concrete classes map one-to-one onto
the ways a job can fail:

- :class:`ProcessFailure`: ``mongodump`` or ``tar`` exited non-zero.
- :class:`UploadFailure`: the storage client reported an error.
- :class:`CleanupFailure`: a scratch path could not be removed.
- :class:`ScratchFailure`: the scratch directory could not be created.
- :class:`LateFault`: an error surfaced asynchronously during the upload,
  outside the normal result channel. This one is fatal and is raised past
  the job result instead of being returned in it.

Example:
    ```python
    from mongodb_s3_backup.core.exceptions import ProcessFailure

    raise ProcessFailure(stage="dump", exit_code=1)
    ```
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pathlib import Path


class BackupError(Exception):
    """Base exception for all backup job errors.

    Attributes:
        message: Human-readable error message.
        code: Error code identifier for programmatic handling.
        extra: Additional context about the error, suitable for ``logging``'s
            ``extra=`` argument.
    """

    def __init__(
        self,
        message: str,
        code: str = "BACKUP_ERROR",
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Initialize backup error.

        Args:
            message: Human-readable error message.
            code: Error code for programmatic handling.
            extra: Additional context about the error.
        """
        self.message = message
        self.code = code
        self.extra = extra or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class ConfigurationError(BackupError):
    """Raised when settings are missing or inconsistent before a job starts."""

    def __init__(self, message: str, extra: dict[str, Any] | None = None) -> None:
        super().__init__(message, code="CONFIGURATION_ERROR", extra=extra)


class ProcessFailure(BackupError):
    """An external process exited with a non-zero status.

    Example:
        ```python
        result = await run_process("tar", ["-zcf", "out.tar.gz", "db"])
        if not result.ok:
            raise ProcessFailure(stage="compress", exit_code=result.exit_code)
        ```
    """

    def __init__(self, stage: str, exit_code: int, command: str | None = None) -> None:
        """Initialize process failure.

        Args:
            stage: Pipeline stage that spawned the process.
            exit_code: Exit status reported for the process.
            command: Executable name, for the message.
        """
        self.stage = stage
        self.exit_code = exit_code
        self.command = command
        name = command or stage
        super().__init__(
            f"{name} exited with code {exit_code}",
            code="PROCESS_FAILURE",
            extra={"stage": stage, "exit_code": exit_code, "command": command},
        )


class UploadFailure(BackupError):
    """The storage client reported an error through its normal channel.

    The client's exception is kept unchanged as ``cause`` and chained as
    ``__cause__`` by the raiser.
    """

    def __init__(self, cause: BaseException, key: str | None = None) -> None:
        self.cause = cause
        self.key = key
        super().__init__(
            f"Upload failed: {cause}",
            code="UPLOAD_FAILURE",
            extra={"key": key, "error": str(cause)},
        )


class CleanupFailure(BackupError):
    """A scratch path could not be removed.

    Returned as a value by the scratch manager rather than raised; the
    orchestrator decides whether it becomes the job's error.
    """

    def __init__(self, path: Path | str, cause: BaseException) -> None:
        self.path = path
        self.cause = cause
        super().__init__(
            f"Failed to remove {path}: {cause}",
            code="CLEANUP_FAILURE",
            extra={"path": str(path), "error": str(cause)},
        )


class LateFault(BackupError):
    """An error surfaced after the upload's own completion signal.

    Raised (never returned) once cleanup has run, so it terminates the
    process instead of being handled as an ordinary job failure.
    """

    def __init__(self, stage: str, cause: BaseException) -> None:
        self.stage = stage
        self.cause = cause
        super().__init__(
            f"Late fault during {stage}: {cause!r}",
            code="LATE_FAULT",
            extra={"stage": stage, "error": repr(cause)},
        )


class ScratchFailure(BackupError):
    """The scratch directory could not be created before the dump."""

    def __init__(self, path: Path | str, cause: BaseException) -> None:
        self.path = path
        self.cause = cause
        super().__init__(
            f"Cannot prepare scratch directory {path}: {cause}",
            code="SCRATCH_FAILURE",
            extra={"path": str(path), "error": str(cause)},
        )
