"""Logging setup: colored console output, JSON Lines, rotating files.

Example:
    from mongodb_s3_backup.infra.logging import setup_logging

    setup_logging()
    logging.getLogger(__name__).info("Starting backup")
"""

from mongodb_s3_backup.infra.logging.color_formatter import ColoredConsoleFormatter
from mongodb_s3_backup.infra.logging.colors import ANSIColors, colorize_tag, should_colorize, strip_ansi
from mongodb_s3_backup.infra.logging.config import configure_logging, setup_logging
from mongodb_s3_backup.infra.logging.formatters import JSONFormatter

__all__ = [
    "ANSIColors",
    "ColoredConsoleFormatter",
    "JSONFormatter",
    "colorize_tag",
    "configure_logging",
    "setup_logging",
    "should_colorize",
    "strip_ansi",
]
