"""MongoDB to S3 backup pipeline.

Example:
    from mongodb_s3_backup.backup import run_backup

    result = await run_backup(mongodb_settings, s3_settings)
    if not result.ok:
        print(result.error.message)
"""

from mongodb_s3_backup.backup.boundary import FaultBoundary
from mongodb_s3_backup.backup.job import BackupJob, BackupResult, CleanupSet, JobState, Stage
from mongodb_s3_backup.backup.naming import archive_name
from mongodb_s3_backup.backup.pipeline import BackupPipeline, run_backup
from mongodb_s3_backup.backup.process import ProcessResult, run_process
from mongodb_s3_backup.backup.scratch import remove_if_exists

__all__ = [
    "BackupJob",
    "BackupPipeline",
    "BackupResult",
    "CleanupSet",
    "FaultBoundary",
    "JobState",
    "ProcessResult",
    "Stage",
    "archive_name",
    "remove_if_exists",
    "run_backup",
    "run_process",
]
