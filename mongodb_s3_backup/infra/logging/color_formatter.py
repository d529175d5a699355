"""Colored console formatter."""

from __future__ import annotations

import logging
import sys
from typing import Any, Literal

from mongodb_s3_backup.infra.logging.colors import colorize_tag, should_colorize

DEFAULT_CONSOLE_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ColoredConsoleFormatter(logging.Formatter):
    """Formatter that colors the level name, or the whole line, by severity.

    Colors are only applied when the target stream supports them, unless
    ``colorize`` forces the decision. Trailing newlines in messages (common
    in lines forwarded from subprocess output) are stripped.

    Example:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(ColoredConsoleFormatter(colorize_message=True))
    """

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: Literal["%", "{", "$"] = "%",
        colorize: bool | None = None,
        colorize_message: bool = False,
        stream: Any = None,
    ) -> None:
        """Initialize colored console formatter.

        Args:
            fmt: Log format string (standard logging format).
            datefmt: Date format string.
            style: Format style ('%', '{', or '$').
            colorize: Force colorization on/off. If None, auto-detect.
            colorize_message: If True, color the entire line (not just level).
            stream: Stream used for auto-detection (default: sys.stderr).
        """
        super().__init__(fmt or DEFAULT_CONSOLE_FORMAT, datefmt or DEFAULT_DATE_FORMAT, style)
        self._colorize = colorize
        self._colorize_message = colorize_message
        self._stream = stream

    def should_use_color(self) -> bool:
        if self._colorize is not None:
            return self._colorize
        return should_colorize(self._stream or sys.stderr)

    def format(self, record: logging.LogRecord) -> str:
        use_color = self.should_use_color()
        original_levelname = record.levelname
        if use_color and not self._colorize_message:
            record.levelname = colorize_tag(original_levelname, original_levelname)
        try:
            formatted = super().format(record)
        finally:
            record.levelname = original_levelname

        formatted = formatted.rstrip("\r\n")
        if use_color and self._colorize_message:
            formatted = colorize_tag(original_levelname, formatted)
        return formatted
