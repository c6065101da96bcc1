from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from textual.widgets import DataTable

from examnest.core.models import AcademicFile, FailureKind


FILE_COLUMNS = ("Name", "Subject", "Category", "Uploaded")

ALERT_TITLES = {
    FailureKind.NETWORK: "Connection Error",
    FailureKind.STORAGE: "Storage Error",
    FailureKind.DATABASE: "Database Error",
}


def _row_key_value(event_row_key: Any) -> str:
    if event_row_key is None:
        return ""
    value = getattr(event_row_key, "value", event_row_key)
    return "" if value is None else str(value)


def _format_size(num_bytes: int) -> str:
    size = float(max(0, num_bytes))
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


def _fill_files_table(table: DataTable, files: Iterable[AcademicFile], *, full: bool = True) -> int:
    """Replace the table rows with ``files`` keyed by file id. Returns the row count."""
    table.clear(columns=False)
    count = 0
    for file in files:
        if full:
            table.add_row(file.file_name, file.subject, file.category, file.upload_date, key=file.id)
        else:
            table.add_row(file.file_name, file.upload_date, key=file.id)
        count += 1
    return count
