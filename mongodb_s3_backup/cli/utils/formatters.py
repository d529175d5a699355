"""Output formatting utilities for CLI commands.

Status lines go to stdout, problems to stderr so ``--json`` output stays
parseable.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

if TYPE_CHECKING:
    from mongodb_s3_backup.backup.job import BackupResult

_STATE_COLORS = {
    "aborted": "red",
    "done": "green",
    "post_clean": "yellow",
}


def success(message: str) -> None:
    click.secho(f"✓ {message}", fg="green")


def error(message: str) -> None:
    """Print an error message in red on stderr."""
    click.secho(f"✗ {message}", fg="red", err=True)


def warning(message: str) -> None:
    """Print a warning message in yellow on stderr."""
    click.secho(f"⚠ {message}", fg="yellow", err=True)


def info(message: str) -> None:
    click.secho(f"ℹ {message}", fg="blue")


def header(message: str) -> None:
    """Print a section header in cyan bold."""
    click.secho(f"\n{message}", fg="cyan", bold=True)


def state_trail(result: BackupResult) -> str:
    """Render the visited states, e.g. ``pre_clean → dump → aborted → ...``."""
    return " → ".join(
        click.style(str(state), fg=_STATE_COLORS.get(str(state))) for state in result.states
    )


def job_summary(result: BackupResult) -> None:
    """Print the outcome of a backup job: one status line plus its states."""
    if result.ok:
        success(f"Uploaded {result.s3_uri}")
    else:
        error(f"{result.job.db}: {result.error.message}")
    click.echo(f"  {state_trail(result)}")
