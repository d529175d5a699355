"""Main CLI entry point for mongodb-s3-backup."""

import os

import click

from mongodb_s3_backup import __version__
from mongodb_s3_backup.cli.commands import backup, config
from mongodb_s3_backup.core.settings import clear_all_caches
from mongodb_s3_backup.infra.logging.config import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="mongodb-s3-backup")
@click.option(
    "--config-dir",
    type=click.Path(exists=True, file_okay=False),
    help="Directory holding mongodb.yaml, s3.yaml, backup.yaml, logging.yaml and their .d/ overrides",
)
@click.pass_context
def cli(ctx: click.Context, config_dir: str | None) -> None:
    """Back up a MongoDB database to S3.

    Each run dumps one database with mongodump, compresses it with tar and
    uploads the archive with a multipart upload. Local scratch files are
    removed whether or not the backup succeeds.

    \b
    Command Groups:
      run      Run one backup
      config   Show or validate the effective configuration

    \b
    Quick Start:
      mongodb-s3-backup config validate
      mongodb-s3-backup run --db orders --bucket my-backups --encrypt
    """
    ctx.ensure_object(dict)
    if config_dir:
        os.environ["CONFIG_DIR"] = config_dir
        clear_all_caches()
    setup_logging(force=bool(config_dir))


cli.add_command(backup.run)
cli.add_command(config.config)


def main() -> None:
    """Entry point for CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
