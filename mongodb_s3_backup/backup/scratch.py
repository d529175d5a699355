"""Scratch directory management."""

from __future__ import annotations

import asyncio
import logging
import shutil
from collections.abc import Iterable
from pathlib import Path

from mongodb_s3_backup.core.exceptions import CleanupFailure

logger = logging.getLogger(__name__)


def _remove(path: Path) -> bool:
    if not path.exists() and not path.is_symlink():
        return False
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()
    return True


async def remove_if_exists(path: Path | str) -> CleanupFailure | None:
    """Recursively remove ``path`` if it exists.

    A missing path counts as success, so calling this repeatedly is safe.

    Returns:
        None on success, or a CleanupFailure describing the OS error. The
        failure is returned rather than raised.
    """
    path = Path(path)
    try:
        removed = await asyncio.to_thread(_remove, path)
    except OSError as e:
        logger.error(
            "Failed to remove %s",
            path,
            extra={"path": str(path), "error": str(e)},
        )
        return CleanupFailure(path, e)

    if removed:
        logger.info("Removed %s", path, extra={"path": str(path)})
    return None


async def remove_all(paths: Iterable[Path]) -> list[CleanupFailure]:
    """Remove every path in order, carrying on past failures."""
    failures = []
    for path in paths:
        failure = await remove_if_exists(path)
        if failure is not None:
            failures.append(failure)
    return failures


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path
