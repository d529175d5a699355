"""ANSI color support for console logging.

Provides environment-aware colorization with detection of terminal
capabilities and respect for NO_COLOR/FORCE_COLOR.
"""

from __future__ import annotations

import os
import re
import sys
from typing import TextIO


class ANSIColors:
    """ANSI escape codes for terminal colors and styles."""

    RESET = "\033[0m"

    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"

    BRIGHT_BLACK = "\033[90m"
    BRIGHT_RED = "\033[91m"
    BRIGHT_CYAN = "\033[96m"


# Level-based color mapping: errors red bold, warnings yellow, info bright cyan.
LEVEL_COLORS: dict[str, str] = {
    "DEBUG": ANSIColors.BRIGHT_BLACK,
    "INFO": ANSIColors.BRIGHT_CYAN,
    "WARNING": ANSIColors.YELLOW,
    "ERROR": ANSIColors.RED + ANSIColors.BOLD,
    "CRITICAL": ANSIColors.BRIGHT_RED + ANSIColors.BOLD,
}

_ANSI_ESCAPE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")


def should_colorize(stream: TextIO | None) -> bool:
    """Determine if colorization should be enabled for a stream.

    Checks (in order):
        1. NO_COLOR env var (https://no-color.org/)
        2. FORCE_COLOR env var (https://force-color.org/)
        3. TERM=dumb
        4. Terminal capability (isatty())
    """
    if stream is None:
        return False

    if stream in (sys.stdout, sys.stderr, sys.__stdout__, sys.__stderr__):
        if os.getenv("NO_COLOR"):
            return False
        if os.getenv("FORCE_COLOR"):
            return True

    if os.environ.get("TERM", "") == "dumb":
        return False

    try:
        return stream.isatty()
    except (AttributeError, ValueError):
        return False


def colorize_tag(tag: str, text: str, use_color: bool = True) -> str:
    """Wrap ``text`` in the color registered for severity ``tag``.

    Stateless: unknown tags and ``use_color=False`` return ``text`` unchanged.

    Example:
        colorize_tag("ERROR", "[error] dump failed")  # red bold
    """
    if not use_color:
        return text
    color = LEVEL_COLORS.get(tag.upper(), "")
    if not color:
        return text
    return f"{color}{text}{ANSIColors.RESET}"


def strip_ansi(text: str) -> str:
    """Remove ANSI escape codes from text."""
    return _ANSI_ESCAPE.sub("", text)
