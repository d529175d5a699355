"""Helpers to sanitize environment variable values before validation."""

from __future__ import annotations

from typing import Any


def strip_inline_comment(value: str) -> str:
    """Remove inline comments of the form "value  # comment".

    Some env-file parsers keep inline comments, so values like
    ``10485760  # 10 MiB`` show up in the process environment. A ``#`` only
    starts a comment when whitespace precedes it, so ``foo#bar`` is kept.
    """

    idx = value.find("#")
    if idx == -1:
        return value.strip()
    if idx == 0:
        return ""
    if not value[idx - 1].isspace():
        return value.strip()
    return value[:idx].strip()


def sanitize_inline_numeric(value: Any) -> Any:
    """Normalize numeric env vars that may include inline comments."""

    if isinstance(value, str):
        cleaned = strip_inline_comment(value)
        if cleaned:
            return cleaned
    return value


def split_comma_list(value: Any) -> Any:
    """Parse a comma-separated env var into a list, dropping blanks."""

    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value
