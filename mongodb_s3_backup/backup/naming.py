"""Archive file naming."""

from __future__ import annotations

from datetime import datetime

ARCHIVE_SUFFIX = ".tar.gz"


def archive_name(db: str, now: datetime | None = None) -> str:
    """Return ``<db>_<year>_<month>_<day>_<epochMillis>.tar.gz``.

    Month and day use the local calendar and are not zero padded; the
    epoch-millisecond suffix makes names unique per run and sortable by
    creation time for a given database.

    Example:
        archive_name("orders", datetime(2024, 1, 5, 12, 0, tzinfo=UTC))
        # "orders_2024_1_5_1704456000000.tar.gz"
    """
    now = now or datetime.now().astimezone()
    epoch_millis = int(now.timestamp()) * 1000 + now.microsecond // 1000
    return f"{db}_{now.year}_{now.month}_{now.day}_{epoch_millis}{ARCHIVE_SUFFIX}"
