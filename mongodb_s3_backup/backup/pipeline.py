"""Backup pipeline orchestration.

Flow:
1. PRE_CLEAN: remove stale dump/archive paths left by an interrupted run
2. DUMP: mongodump the database into the scratch directory
3. COMPRESS: tar + gzip the dump into the archive
4. UPLOAD: multipart upload of the archive, inside a FaultBoundary
5. POST_CLEAN: remove the dump directory and archive, always
6. DONE

The first failing stage aborts the sequence. A scratch directory that cannot
be created aborts the job before DUMP. POST_CLEAN runs once whether
the job succeeded, failed, or hit a late fault; the job's normal result
carries the first error, while a late fault is raised instead.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from mongodb_s3_backup.backup import scratch, stages
from mongodb_s3_backup.backup.boundary import FaultBoundary
from mongodb_s3_backup.backup.job import BackupJob, BackupResult, JobState, Stage
from mongodb_s3_backup.core.exceptions import BackupError, CleanupFailure, LateFault, ScratchFailure
from mongodb_s3_backup.core.settings import BackupSettings

if TYPE_CHECKING:
    from mongodb_s3_backup.core.settings import MongoDBSettings, S3Settings
    from mongodb_s3_backup.infra.storage.s3 import S3Client

logger = logging.getLogger(__name__)


class BackupPipeline:
    """Runs one backup job from pre-clean to done.

    A pipeline instance is single use: :meth:`run` may be awaited once.
    """

    def __init__(
        self,
        job: BackupJob,
        settings: BackupSettings | None = None,
        s3_client: S3Client | None = None,
    ) -> None:
        self.job = job
        self.settings = settings or BackupSettings(scratch_root=job.scratch_root)
        self._s3_client = s3_client
        self.states: list[JobState] = []
        self._cleanup_task: asyncio.Task[list[CleanupFailure]] | None = None
        self._outputs: dict[JobState, Any] = {}

    @property
    def state(self) -> JobState | None:
        return self.states[-1] if self.states else None

    def _enter(self, state: JobState) -> None:
        self.states.append(state)
        logger.debug("Entering %s", state, extra={"stage": str(state), "db": self.job.db})

    def build_stages(self, boundary: FaultBoundary) -> tuple[Stage, ...]:
        """The ordered stage sequence for this job."""
        job = self.job
        return (
            Stage(
                name=JobState.DUMP,
                label=f"mongodump of {job.db}",
                work=lambda: stages.dump(job.mongodb, job.scratch_root),
            ),
            Stage(
                name=JobState.COMPRESS,
                label=f"compression of {job.db} into {job.archive_name}",
                work=lambda: stages.compress(
                    job.scratch_root, job.db, job.archive_name, tar_path=self.settings.tar_path
                ),
            ),
            Stage(
                name=JobState.UPLOAD,
                label=f"upload of {job.archive_name}",
                work=lambda: boundary.run(
                    lambda: stages.upload(
                        job.s3, job.archive_path, job.destination_key, client=self._s3_client
                    )
                ),
            ),
        )

    async def run(self) -> BackupResult:
        """Run the job.

        Returns:
            BackupResult whose ``error`` is the first stage error, or the
            first cleanup failure when every stage succeeded.

        Raises:
            LateFault: If the upload's fault boundary caught an error outside
                the normal result channel. Cleanup has already run.
        """
        if self.states:
            msg = "BackupPipeline.run() may only be called once"
            raise RuntimeError(msg)

        result = BackupResult(job=self.job, states=self.states)
        logger.info(
            "Starting backup of %s",
            self.job.db,
            extra={"db": self.job.db, "archive_name": self.job.archive_name},
        )

        error = await self._pre_clean()

        boundary = FaultBoundary(str(JobState.UPLOAD), on_fault=self._cleanup)
        try:
            try:
                if error is None:
                    error = await self._run_stages(self.build_stages(boundary))
            finally:
                cleanup_failures = await self._cleanup()
            await boundary.settle()
        finally:
            boundary.close()

        if error is None and cleanup_failures:
            error = cleanup_failures[0]

        result.error = error
        result.s3_uri = self._outputs.get(JobState.UPLOAD)
        self._enter(JobState.DONE)

        if error is None:
            logger.info(
                "Successfully backed up %s",
                self.job.db,
                extra={"db": self.job.db, "s3_uri": result.s3_uri},
            )
        else:
            logger.error(
                "Backup of %s failed: %s",
                self.job.db,
                error.message,
                extra={"db": self.job.db, "error_code": error.code, **error.extra},
            )
        return result

    async def _pre_clean(self) -> BackupError | None:
        self._enter(JobState.PRE_CLEAN)
        if self.settings.pre_clean:
            for failure in await scratch.remove_all(self.job.cleanup_set):
                logger.warning(
                    "Could not remove stale path %s",
                    failure.path,
                    extra={"path": str(failure.path), "error": str(failure.cause)},
                )
        try:
            scratch.ensure_dir(self.job.scratch_root)
        except OSError as e:
            error = ScratchFailure(self.job.scratch_root, e)
            logger.error(
                "Cannot prepare scratch directory %s",
                self.job.scratch_root,
                extra={"db": self.job.db, "error_code": error.code, **error.extra},
            )
            self._enter(JobState.ABORTED)
            return error
        return None

    async def _run_stages(self, sequence: tuple[Stage, ...]) -> BackupError | None:
        """Run stages in order, stopping at the first failure.

        Returns:
            The failing stage's error, or None if every stage succeeded.
        """
        for stage in sequence:
            self._enter(stage.name)
            logger.info("Running %s", stage.label, extra={"stage": str(stage.name)})
            try:
                self._outputs[stage.name] = await stage.work()
            except LateFault:
                raise
            except BackupError as e:
                logger.error(
                    "Stage %s failed: %s",
                    stage.name,
                    e.message,
                    extra={"stage": str(stage.name), "error_code": e.code},
                )
                self._enter(JobState.ABORTED)
                return e
            except Exception:
                logger.exception("Unexpected error during %s", stage.label, extra={"stage": str(stage.name)})
                self._enter(JobState.ABORTED)
                raise
        return None

    async def _cleanup(self) -> list[CleanupFailure]:
        """Remove the job's CleanupSet, once.

        Every caller awaits the same task, so concurrent callers (the
        pipeline and the fault boundary) never remove paths twice.
        """
        if self._cleanup_task is None:
            self._cleanup_task = asyncio.ensure_future(self._post_clean())
        return await self._cleanup_task

    async def _post_clean(self) -> list[CleanupFailure]:
        self._enter(JobState.POST_CLEAN)
        failures = await scratch.remove_all(self.job.cleanup_set)
        for failure in failures:
            logger.error(
                "Cleanup failed for %s",
                failure.path,
                extra={"path": str(failure.path), "error": str(failure.cause)},
            )
        return failures


async def run_backup(
    mongodb: MongoDBSettings,
    s3: S3Settings,
    backup: BackupSettings | None = None,
    s3_client: S3Client | None = None,
) -> BackupResult:
    """Back up one database to S3.

    Resolves once all cleanup has completed.

    Example:
        from mongodb_s3_backup.core.settings import get_mongodb_settings, get_s3_settings

        result = await run_backup(get_mongodb_settings(), get_s3_settings())
        result.raise_for_error()

    Raises:
        ConfigurationError: If no database or bucket is configured.
        LateFault: If the upload failed outside its normal result channel.
    """
    backup = backup or BackupSettings()
    job = BackupJob.create(mongodb, s3, scratch_root=backup.scratch_root)
    return await BackupPipeline(job, backup, s3_client=s3_client).run()
