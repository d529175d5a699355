"""Configuration inspection commands."""

import json
import sys

import click
from pydantic import ValidationError

from mongodb_s3_backup.cli.utils import error, header, success, warning
from mongodb_s3_backup.core.settings import (
    get_backup_settings,
    get_logging_settings,
    get_mongodb_settings,
    get_s3_settings,
)


@click.group(name="config")
def config() -> None:
    """Configuration management commands."""


def _load_all() -> dict:
    return {
        "mongodb": get_mongodb_settings(),
        "s3": get_s3_settings(),
        "backup": get_backup_settings(),
        "logging": get_logging_settings(),
    }


@config.command(name="show")
@click.option("--json", "as_json", is_flag=True, help="Print as JSON")
def show(as_json: bool) -> None:
    """Show the effective configuration (secrets masked)."""
    try:
        sections = _load_all()
    except ValidationError as e:
        error(f"Invalid configuration: {e}")
        sys.exit(2)

    # SecretStr fields serialize as "**********" in json mode
    dumped = {name: settings.model_dump(mode="json") for name, settings in sections.items()}

    if as_json:
        click.echo(json.dumps(dumped, indent=2))
        return

    for name, values in dumped.items():
        header(name)
        for key, value in values.items():
            click.echo(f"  {key}: {value}")


@config.command(name="validate")
def validate() -> None:
    """Check that a backup could start with the current configuration."""
    try:
        sections = _load_all()
    except ValidationError as e:
        error(f"Invalid configuration: {e}")
        sys.exit(2)

    problems = []
    if not sections["mongodb"].is_configured:
        problems.append("MONGODB_DB is not set")
    if not sections["s3"].is_configured:
        problems.append("S3_BUCKET is not set")

    s3 = sections["s3"]
    if bool(s3.access_key) != bool(s3.secret_key):
        warning("Only one of S3_ACCESS_KEY/S3_SECRET_KEY is set; the AWS default credential chain will be used")

    if problems:
        for problem in problems:
            error(problem)
        sys.exit(2)
    success("Configuration is valid")
