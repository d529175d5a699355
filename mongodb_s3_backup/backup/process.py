"""External process invocation with live output forwarding."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import shlex
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from mongodb_s3_backup.core.exceptions import ProcessFailure

logger = logging.getLogger(__name__)

# Exit status reported when the executable cannot be spawned at all,
# matching the shell's "command not found".
SPAWN_FAILED_EXIT_CODE = 127


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of one external process invocation.

    Output is forwarded to the logger while the process runs and is not
    kept here.
    """

    command: str
    args: tuple[str, ...]
    exit_code: int

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def check(self, stage: str) -> ProcessResult:
        """Return self, or raise ProcessFailure if the process failed."""
        if not self.ok:
            raise ProcessFailure(stage=stage, exit_code=self.exit_code, command=self.command)
        return self


def _log_line(line: bytes, level: int, command: str) -> None:
    text = line.decode(errors="replace").rstrip("\r\n")
    if text:
        logger.log(level, text, extra={"command": command})


async def _forward_lines(stream: asyncio.StreamReader | None, level: int, command: str) -> None:
    """Log ``stream`` line by line until EOF.

    Lines longer than the stream's buffer limit are logged in pieces, one per
    buffer fill.
    """
    if stream is None:
        return
    while True:
        try:
            line = await stream.readuntil(b"\n")
        except asyncio.IncompleteReadError as e:
            # EOF, possibly after a final line without a newline
            _log_line(e.partial, level, command)
            return
        except asyncio.LimitOverrunError as e:
            line = await stream.read(max(e.consumed, 1))
        _log_line(line, level, command)


async def run_process(
    command: str,
    args: Sequence[str],
    cwd: Path | str | None = None,
    redact: Sequence[str] = (),
) -> ProcessResult:
    """Spawn ``command`` and wait for it to exit.

    Every stdout line is logged at INFO and every stderr line at ERROR as
    it arrives. Both pipes are drained concurrently so neither can fill up
    and stall the child.

    Args:
        command: Executable name or path.
        args: Argument list.
        cwd: Working directory for the process (default: inherit).
        redact: Argument values masked in the logged command line.

    Returns:
        ProcessResult carrying the exit code. A non-zero or signal exit is
        not raised here; callers decide with :meth:`ProcessResult.check`.
    """
    args = tuple(args)
    shown = " ".join(shlex.quote("****" if arg in redact else arg) for arg in (command, *args))
    logger.debug("Spawning process", extra={"command_line": shown, "cwd": str(cwd) if cwd else None})

    try:
        proc = await asyncio.create_subprocess_exec(
            command,
            *args,
            cwd=cwd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        logger.error(
            "Failed to start %s: %s",
            command,
            e,
            extra={"command": command, "error": str(e)},
        )
        return ProcessResult(command=command, args=args, exit_code=SPAWN_FAILED_EXIT_CODE)

    readers = [
        asyncio.ensure_future(_forward_lines(proc.stdout, logging.INFO, command)),
        asyncio.ensure_future(_forward_lines(proc.stderr, logging.ERROR, command)),
    ]
    try:
        await asyncio.gather(*readers)
        exit_code = await proc.wait()
    except BaseException:
        # Kill and reap the child if forwarding failed or was cancelled.
        for reader in readers:
            reader.cancel()
        if proc.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()
        raise

    if exit_code != 0:
        logger.error(
            "%s exited with code %s",
            command,
            exit_code,
            extra={"command": command, "exit_code": exit_code},
        )
    return ProcessResult(command=command, args=args, exit_code=exit_code)
