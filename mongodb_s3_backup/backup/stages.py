"""Dump, compress and upload stages.

Each stage either returns normally or raises a :class:`BackupError`
subclass; the pipeline treats the first raised error as the job's error.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from mongodb_s3_backup.backup.job import JobState
from mongodb_s3_backup.backup.process import run_process
from mongodb_s3_backup.core.exceptions import UploadFailure
from mongodb_s3_backup.infra.storage.s3 import S3Client

if TYPE_CHECKING:
    from pathlib import Path

    from mongodb_s3_backup.core.settings import MongoDBSettings, S3Settings

logger = logging.getLogger(__name__)


def build_dump_args(settings: MongoDBSettings, output_dir: Path | str) -> list[str]:
    """Build the mongodump argument list.

    Credentials are only passed when both username and password are set.
    Excluded collections keep the order they were configured in.
    """
    args = [
        "-h", settings.address,
        "-d", settings.db,
        "-o", str(output_dir),
    ]

    if settings.has_credentials:
        args.extend(["-u", settings.username])
        args.extend(["-p", settings.password.get_secret_value()])

    if settings.authentication_database:
        args.extend(["--authenticationDatabase", settings.authentication_database])

    for collection in settings.exclude_collections:
        args.extend(["--excludeCollection", collection])

    return args


async def dump(settings: MongoDBSettings, output_dir: Path | str) -> None:
    """Run mongodump for the configured database into ``output_dir``.

    Raises:
        ProcessFailure: If mongodump exits non-zero.
    """
    logger.info("Starting mongodump of %s", settings.db, extra={"stage": str(JobState.DUMP)})
    redact = [settings.password.get_secret_value()] if settings.has_credentials else []
    result = await run_process(
        settings.mongodump_path,
        build_dump_args(settings, output_dir),
        redact=redact,
    )
    result.check(str(JobState.DUMP))
    logger.info("mongodump executed successfully", extra={"stage": str(JobState.DUMP)})


async def compress(
    working_dir: Path | str,
    input_name: str,
    output_name: str,
    tar_path: str = "tar",
) -> None:
    """Create the gzip-compressed tar ``output_name`` from ``input_name``.

    Both names are relative to ``working_dir``, where tar runs.

    Raises:
        ProcessFailure: If tar exits non-zero.
    """
    logger.info(
        "Starting compression of %s into %s",
        input_name,
        output_name,
        extra={"stage": str(JobState.COMPRESS)},
    )
    result = await run_process(tar_path, ["-zcf", output_name, input_name], cwd=working_dir)
    result.check(str(JobState.COMPRESS))
    logger.info("Successfully compressed %s", input_name, extra={"stage": str(JobState.COMPRESS)})


async def upload(
    settings: S3Settings,
    source_path: Path,
    destination_key: str,
    client: S3Client | None = None,
) -> str:
    """Upload the archive at ``source_path`` to ``destination_key``.

    Returns:
        The S3 URI of the uploaded archive.

    Raises:
        UploadFailure: If the storage client reports any error; the
            client's exception is kept unchanged as the cause.
    """
    logger.info(
        "Attempting to upload %s to the %s bucket",
        source_path.name,
        settings.bucket,
        extra={"stage": str(JobState.UPLOAD)},
    )
    client = client or S3Client(settings)
    try:
        return await client.upload_archive(source_path, destination_key)
    except UploadFailure:
        raise
    except Exception as e:
        raise UploadFailure(e, key=destination_key) from e
