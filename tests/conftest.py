from collections.abc import Callable
from pathlib import Path

import pytest


@pytest.fixture
def write_table(tmp_path: Path) -> Callable[[str, str], Path]:
    """
    Writes a redirect table into the test's temp dir and returns its path.
    """

    def _write(name: str, content: str) -> Path:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    return _write
