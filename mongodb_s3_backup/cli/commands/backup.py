"""Backup command: dump, compress and upload one database."""

from __future__ import annotations

import json
import logging
import os
import sys
from typing import Any

import click
from pydantic import ValidationError

from mongodb_s3_backup.backup import run_backup
from mongodb_s3_backup.cli.utils import coro, error, info, job_summary
from mongodb_s3_backup.core.exceptions import ConfigurationError, LateFault
from mongodb_s3_backup.core.settings import BackupSettings, MongoDBSettings, S3Settings

logger = logging.getLogger(__name__)

EXIT_JOB_FAILED = 1
EXIT_CONFIG_ERROR = 2
# os.EX_SOFTWARE is POSIX-only
EXIT_LATE_FAULT = getattr(os, "EX_SOFTWARE", 70)


def _overrides(**options: Any) -> dict[str, Any]:
    """Keep only the options given on the command line."""
    return {key: value for key, value in options.items() if value not in (None, ())}


@click.command(name="run")
@click.option("--db", help="Database to back up (MONGODB_DB)")
@click.option("--host", help="MongoDB host (MONGODB_HOST)")
@click.option("--port", type=int, help="MongoDB port (MONGODB_PORT)")
@click.option("--username", "-u", help="MongoDB username (MONGODB_USERNAME)")
@click.option("--password", "-p", help="MongoDB password (MONGODB_PASSWORD)")
@click.option(
    "--authentication-database",
    help="Database holding the user's credentials (MONGODB_AUTHENTICATION_DATABASE)",
)
@click.option(
    "--exclude-collection",
    "exclude_collections",
    multiple=True,
    help="Collection to leave out; repeat for several (MONGODB_EXCLUDE_COLLECTIONS)",
)
@click.option("--bucket", help="Destination bucket (S3_BUCKET)")
@click.option("--destination", help="Key prefix inside the bucket (S3_DESTINATION)")
@click.option("--encrypt/--no-encrypt", default=None, help="AES256 server-side encryption (S3_ENCRYPT)")
@click.option(
    "--pre-clean/--no-pre-clean",
    default=None,
    help="Remove stale paths from an interrupted run first (BACKUP_PRE_CLEAN)",
)
@click.option("--json", "as_json", is_flag=True, help="Print the job result as JSON")
@coro
async def run(
    db: str | None,
    host: str | None,
    port: int | None,
    username: str | None,
    password: str | None,
    authentication_database: str | None,
    exclude_collections: tuple[str, ...],
    bucket: str | None,
    destination: str | None,
    encrypt: bool | None,
    pre_clean: bool | None,
    as_json: bool,
) -> None:
    """Back up one MongoDB database to S3.

    Options override values from conf/*.yaml, the environment and .env.

    \b
    Exit codes:
      0   backup uploaded, scratch files removed
      1   a stage or the cleanup failed
      2   configuration is missing or invalid
      70  the upload failed outside its normal result channel (fatal)
    """
    try:
        mongodb = MongoDBSettings(
            **_overrides(
                db=db,
                host=host,
                port=port,
                username=username,
                password=password,
                authentication_database=authentication_database,
                exclude_collections=list(exclude_collections) or None,
            )
        )
        s3 = S3Settings(**_overrides(bucket=bucket, destination=destination, encrypt=encrypt))
        backup = BackupSettings(**_overrides(pre_clean=pre_clean))
    except ValidationError as e:
        error(f"Invalid configuration: {e}")
        sys.exit(EXIT_CONFIG_ERROR)

    if not as_json:
        info(f"Backing up {mongodb.db or '<unset>'} to s3://{s3.bucket or '<unset>'}")

    try:
        result = await run_backup(mongodb, s3, backup)
    except ConfigurationError as e:
        error(e.message)
        sys.exit(EXIT_CONFIG_ERROR)
    except LateFault as e:
        logger.critical(
            "Aborting after late fault: %s",
            e.message,
            exc_info=True,
            extra={"error_code": e.code, **e.extra},
        )
        error(e.message)
        sys.exit(EXIT_LATE_FAULT)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        job_summary(result)

    if not result.ok:
        sys.exit(EXIT_JOB_FAILED)
