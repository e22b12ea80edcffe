"""Delimited-text report of broken resources."""

import os
from collections.abc import Iterable

from .collector import ErrorRecord

REPORT_HEADER = "PageURL,ResourceURL,ErrorCode"


def format_report(records: Iterable[ErrorRecord]) -> list[str]:
    """Render records as report lines, header first.

    Fields are joined with commas and are not quoted, so a URL containing
    a comma produces a row with extra columns.

    Args:
        records: Error records in the order they should appear.

    Returns:
        List of lines without line terminators.
    """
    lines = [REPORT_HEADER]
    for record in records:
        lines.append(",".join(str(field) for field in record.as_row()))
    return lines


def save_report(records: Iterable[ErrorRecord], filepath: str) -> bool:
    """Write the report file, creating directories as needed.

    Nothing is written when there are no records.

    Args:
        records: Snapshot of the error collector.
        filepath: Destination path.

    Returns:
        True if a report was written, False if there was nothing to write
        or the write failed.
    """
    records = list(records)
    if not records:
        return False

    try:
        directory = os.path.dirname(filepath)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(filepath, "w", encoding="utf-8", newline="") as f:
            f.write("\n".join(format_report(records)) + "\n")

        return True
    except OSError as e:
        print(f"  [ERROR] Failed to save {filepath}: {e}")
        return False
