"""
Tests for loading redirect tables into a RedirectConfigBuilder.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from src.components.redirects import (
    RedirectConfigBuilder,
    RedirectEngine,
    RedirectLoadError,
    RequestView,
)
from src.components.redirects.adapters import LocalCsvRecordSource

WriteTable = Callable[[str, str], Path]

# --- In-Memory Record Source ---


class InMemoryRecordSource:
    """Record source backed by a dict of path -> records."""

    def __init__(self, tables: dict[str, list[list[str]]] | None = None) -> None:
        self._tables = tables or {}

    def exists(self, path: Path) -> bool:
        return str(path) in self._tables

    def read_records(self, path: Path) -> list[list[str]]:
        return self._tables[str(path)]


class BrokenRecordSource:
    """Record source that exists but can't be read."""

    def exists(self, path: Path) -> bool:
        return True

    def read_records(self, path: Path) -> list[list[str]]:
        raise PermissionError(f"Permission denied: {path}")


# --- Fixtures ---


@pytest.fixture
def builder() -> RedirectConfigBuilder:
    """Builder that already holds one rule of each kind."""
    return (
        RedirectConfigBuilder()
        .add_exact_redirect("/x", "/y")
        .add_regex_redirect("^/old/(.*)", "/new/$1")
    )


# --- Exact Table Tests ---


class TestLoadExactRedirects:
    """Loading exact redirect tables."""

    def test_loads_records(self, write_table: WriteTable) -> None:
        path = write_table("redirects.csv", "/foo,/\n/a,/b\n")
        builder = RedirectConfigBuilder()

        assert builder.load_exact_redirects(path) == 2
        assert dict(builder.build().exact_redirects) == {"/foo": "/", "/a": "/b"}

    def test_accepts_string_path(self, write_table: WriteTable) -> None:
        path = write_table("redirects.csv", "/foo,/\n")
        builder = RedirectConfigBuilder()

        assert builder.load_exact_redirects(str(path)) == 1

    def test_loaded_redirects_apply(self, write_table: WriteTable) -> None:
        path = write_table("redirects.csv", "/foo,/\n")
        builder = RedirectConfigBuilder()
        builder.load_exact_redirects(path)
        engine = RedirectEngine(builder.build())

        assert engine.redirect_url(RequestView.from_url("http://foo.com/foo")) == "http://foo.com/"

    def test_appends_to_existing(self, builder: RedirectConfigBuilder, write_table: WriteTable) -> None:
        path = write_table("redirects.csv", "/foo,/\n")
        builder.load_exact_redirects(path)

        assert dict(builder.build().exact_redirects) == {"/x": "/y", "/foo": "/"}

    def test_last_duplicate_wins(self, write_table: WriteTable) -> None:
        path = write_table("redirects.csv", "/foo,/first\n/foo,/second\n")
        builder = RedirectConfigBuilder()
        builder.load_exact_redirects(path)

        assert dict(builder.build().exact_redirects) == {"/foo": "/second"}

    def test_blank_lines_skipped(self, write_table: WriteTable) -> None:
        path = write_table("redirects.csv", "/a,/b\n\n/c,/d\n")
        builder = RedirectConfigBuilder()

        assert builder.load_exact_redirects(path) == 2

    def test_quoted_fields(self, write_table: WriteTable) -> None:
        path = write_table("redirects.csv", '"/a,b","/c"\n')
        builder = RedirectConfigBuilder()
        builder.load_exact_redirects(path)

        assert dict(builder.build().exact_redirects) == {"/a,b": "/c"}

    def test_empty_path_is_noop(self, builder: RedirectConfigBuilder) -> None:
        assert builder.load_exact_redirects("") == 0
        assert dict(builder.build().exact_redirects) == {"/x": "/y"}

    def test_missing_file(self, builder: RedirectConfigBuilder, tmp_path: Path) -> None:
        with pytest.raises(RedirectLoadError) as exc_info:
            builder.load_exact_redirects(tmp_path / "no" / "such.csv")

        assert exc_info.value.code == "not_found"
        assert dict(builder.build().exact_redirects) == {"/x": "/y"}

    def test_malformed_record_leaves_builder_untouched(
        self,
        builder: RedirectConfigBuilder,
        write_table: WriteTable,
    ) -> None:
        path = write_table("redirects.csv", "/a,/b\n/c,/d,/e\n")

        with pytest.raises(RedirectLoadError) as exc_info:
            builder.load_exact_redirects(path)

        assert exc_info.value.code == "malformed_record"
        assert exc_info.value.record == 2
        assert exc_info.value.path == path
        assert dict(builder.build().exact_redirects) == {"/x": "/y"}

    def test_single_field_is_malformed(self, write_table: WriteTable) -> None:
        path = write_table("redirects.csv", "/only-one\n")

        with pytest.raises(RedirectLoadError) as exc_info:
            RedirectConfigBuilder().load_exact_redirects(path)

        assert exc_info.value.code == "malformed_record"
        assert exc_info.value.record == 1

    def test_directory_is_unreadable(self, tmp_path: Path) -> None:
        with pytest.raises(RedirectLoadError) as exc_info:
            RedirectConfigBuilder().load_exact_redirects(tmp_path)

        assert exc_info.value.code == "unreadable"

    def test_undecodable_bytes_are_unreadable(self, tmp_path: Path) -> None:
        path = tmp_path / "redirects.csv"
        path.write_bytes(b"\xff\xfe/a,/b\n")

        with pytest.raises(RedirectLoadError) as exc_info:
            RedirectConfigBuilder().load_exact_redirects(path)

        assert exc_info.value.code == "unreadable"

    def test_bad_quoting_is_unreadable(self, write_table: WriteTable) -> None:
        path = write_table("redirects.csv", '/a,"/b"x\n')

        with pytest.raises(RedirectLoadError) as exc_info:
            RedirectConfigBuilder().load_exact_redirects(path)

        assert exc_info.value.code == "unreadable"

    def test_unreadable_source(self) -> None:
        with pytest.raises(RedirectLoadError) as exc_info:
            RedirectConfigBuilder().load_exact_redirects("redirects.csv", source=BrokenRecordSource())

        assert exc_info.value.code == "unreadable"


# --- Regex Table Tests ---


class TestLoadRegexRedirects:
    """Loading regex redirect tables."""

    def test_loads_in_file_order(self, write_table: WriteTable) -> None:
        path = write_table("regex.csv", "^/foo/(.*),/first/$1\n^/foo/bar$,/second\n")
        builder = RedirectConfigBuilder()

        assert builder.load_regex_redirects(path) == 2
        rules = builder.build().regex_redirects
        assert [r.expression for r in rules] == ["^/foo/(.*)", "^/foo/bar$"]

    def test_appended_after_existing(
        self,
        builder: RedirectConfigBuilder,
        write_table: WriteTable,
    ) -> None:
        path = write_table("regex.csv", "^/de/(.*),/$1\n")
        builder.load_regex_redirects(path)

        rules = builder.build().regex_redirects
        assert [r.expression for r in rules] == ["^/old/(.*)", "^/de/(.*)"]

    def test_duplicates_are_kept(self, write_table: WriteTable) -> None:
        path = write_table("regex.csv", "^/a,/b\n^/a,/c\n")
        builder = RedirectConfigBuilder()
        builder.load_regex_redirects(path)

        rules = builder.build().regex_redirects
        assert [(r.expression, r.replacement) for r in rules] == [("^/a", "/b"), ("^/a", "/c")]

    def test_invalid_pattern_rejected(
        self,
        builder: RedirectConfigBuilder,
        write_table: WriteTable,
    ) -> None:
        path = write_table("regex.csv", "^/ok,/\n^/(broken,/\n")

        with pytest.raises(RedirectLoadError) as exc_info:
            builder.load_regex_redirects(path)

        assert exc_info.value.code == "invalid_pattern"
        assert exc_info.value.record == 2
        assert len(builder.build().regex_redirects) == 1

    def test_malformed_record(self, builder: RedirectConfigBuilder, write_table: WriteTable) -> None:
        path = write_table("regex.csv", "^/a,/b,/c\n")

        with pytest.raises(RedirectLoadError) as exc_info:
            builder.load_regex_redirects(path)

        assert exc_info.value.code == "malformed_record"
        assert len(builder.build().regex_redirects) == 1

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(RedirectLoadError) as exc_info:
            RedirectConfigBuilder().load_regex_redirects(tmp_path / "missing.csv")

        assert exc_info.value.code == "not_found"

    def test_empty_path_is_noop(self) -> None:
        assert RedirectConfigBuilder().load_regex_redirects("") == 0


# --- Record Source Tests ---


class TestRecordSources:
    """Custom record sources and the CSV adapter."""

    def test_in_memory_source(self) -> None:
        source = InMemoryRecordSource({"table": [["/a", "/b"], [], ["/c", "/d"]]})
        builder = RedirectConfigBuilder()

        assert builder.load_exact_redirects("table", source=source) == 2
        assert dict(builder.build().exact_redirects) == {"/a": "/b", "/c": "/d"}

    def test_in_memory_source_missing(self) -> None:
        with pytest.raises(RedirectLoadError) as exc_info:
            RedirectConfigBuilder().load_exact_redirects("other", source=InMemoryRecordSource())

        assert exc_info.value.code == "not_found"

    def test_csv_adapter_delimiter(self, write_table: WriteTable) -> None:
        path = write_table("redirects.tsv", "/a\t/b\n")
        source = LocalCsvRecordSource(delimiter="\t")

        assert source.read_records(path) == [["/a", "/b"]]
