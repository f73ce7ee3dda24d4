"""
Redirects component port definitions.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol


class RecordSourcePort(Protocol):
    """Port for reading two-column redirect tables."""

    def exists(self, path: Path) -> bool:
        """Check if a table exists."""
        ...

    def read_records(self, path: Path) -> list[list[str]]:
        """
        Read every record of a table.

        Blank lines come back as empty records so record numbers line up.
        Raises OSError if the table cannot be opened and ValueError if its
        contents cannot be parsed.
        """
        ...
