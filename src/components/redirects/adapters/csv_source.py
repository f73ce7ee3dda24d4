"""
CSV file adapter for redirect tables.
"""

from __future__ import annotations

import csv
from pathlib import Path


class LocalCsvRecordSource:
    """Reads comma separated redirect tables from the local file system."""

    def __init__(self, delimiter: str = ",", encoding: str = "utf-8") -> None:
        self._delimiter = delimiter
        self._encoding = encoding

    def exists(self, path: Path) -> bool:
        """Check if a table file exists."""
        return path.exists()

    def read_records(self, path: Path) -> list[list[str]]:
        """Read all records of a CSV file."""
        with open(path, encoding=self._encoding, newline="") as f:
            reader = csv.reader(f, delimiter=self._delimiter, strict=True)
            try:
                return list(reader)
            except csv.Error as e:
                raise ValueError(f"line {reader.line_num}: {e}") from e


# Default adapter instance
default_record_source = LocalCsvRecordSource()
