"""
RedirectEngine - canonical URL enforcement for incoming requests.

Decides whether a request must be redirected and computes the target URL.

Key behaviors:
- Policies are evaluated in a fixed order: TLS, host, lower case,
  trailing slash, no trailing slash, regex redirects, exact redirects
- Regex redirects are first-match-wins in insertion order
- Every pattern is compiled once, while the config is being built
- A built RedirectConfig is frozen; only the builder accepts new entries
- Redirects are always 301 and keep the query string untouched
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from urllib.parse import quote, unquote, urlsplit, urlunsplit

from .ports import RecordSourcePort

logger = logging.getLogger(__name__)

MOVED_PERMANENTLY = 301

# Characters left unescaped when the path is written back into a URL
_PATH_SAFE = "/!$&'()*+,;=:@~"
# Only query bytes outside printable ASCII are escaped
_QUERY_SAFE = "".join(chr(c) for c in range(0x21, 0x7F))

# $$, ${name}, $name
_TEMPLATE_REF = re.compile(r"\$(?:(\$)|\{([A-Za-z0-9_]+)\}|([A-Za-z0-9_]+))")


# --- Errors ---


class RedirectConfigError(ValueError):
    """Raised when a redirect configuration value is rejected."""

    INVALID_PATTERN = "invalid_pattern"

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)


class RedirectLoadError(RedirectConfigError):
    """Raised when a redirect table cannot be loaded."""

    NOT_FOUND = "not_found"
    UNREADABLE = "unreadable"
    MALFORMED_RECORD = "malformed_record"

    def __init__(
        self,
        code: str,
        path: Path,
        message: str,
        record: int | None = None,
    ) -> None:
        self.path = path
        self.record = record
        location = f"{path}, record {record}" if record is not None else str(path)
        super().__init__(code, f"{location}: {message}")


class RedirectRewriteError(Exception):
    """Raised when the redirect URL cannot be put back together."""


# --- Patterns ---


def compile_pattern(expression: str, field_name: str = "pattern") -> re.Pattern[str]:
    """Compile a configured regular expression or raise RedirectConfigError."""
    try:
        return re.compile(expression)
    except re.error as e:
        raise RedirectConfigError(
            RedirectConfigError.INVALID_PATTERN,
            f"Invalid {field_name} {expression!r}: {e}",
        ) from e


def _compile_optional(expression: str | None, field_name: str) -> re.Pattern[str] | None:
    if not expression:
        return None
    return compile_pattern(expression, field_name)


def expand_template(template: str, match: re.Match[str]) -> str:
    """
    Expand a replacement template against a match.

    Supports $1, ${1}, $name and ${name}; $$ is a literal dollar sign.
    Groups that don't exist or didn't participate expand to "".
    """

    def _ref(ref: re.Match[str]) -> str:
        if ref.group(1):
            return "$"
        name = ref.group(2) or ref.group(3)
        key: int | str = int(name) if name.isdigit() else name
        try:
            return match.group(key) or ""
        except IndexError:
            return ""

    return _TEMPLATE_REF.sub(_ref, template)


# --- Request View ---


@dataclass(frozen=True)
class RequestView:
    """Read-only view of the parts of a request the engine looks at."""

    scheme: str
    host: str
    path: str = "/"
    query: str = ""  # raw query bytes, latin-1 decoded
    forwarded_hosts: tuple[str, ...] = ()

    @property
    def secure(self) -> bool:
        return self.scheme.lower() == "https"

    @property
    def effective_host(self) -> str:
        """Single non-empty X-Forwarded-Host value, else the request host."""
        if len(self.forwarded_hosts) == 1 and self.forwarded_hosts[0]:
            return self.forwarded_hosts[0]
        return self.host

    @classmethod
    def from_url(cls, url: str, forwarded_hosts: Iterable[str] = ()) -> RequestView:
        """Build a view from an absolute URL (path is percent-decoded)."""
        parts = urlsplit(url)
        return cls(
            scheme=parts.scheme or "http",
            host=parts.netloc,
            path=unquote(parts.path) or "/",
            query=parts.query.encode("utf-8").decode("latin-1"),
            forwarded_hosts=tuple(forwarded_hosts),
        )


# --- Configuration ---


@dataclass(frozen=True)
class RegexRedirect:
    """Compiled pattern with its replacement template."""

    pattern: re.Pattern[str]
    replacement: str

    @property
    def expression(self) -> str:
        return self.pattern.pattern

    def matches(self, path: str) -> bool:
        return self.pattern.search(path) is not None

    def apply(self, path: str) -> str:
        return self.pattern.sub(lambda m: expand_template(self.replacement, m), path)


@dataclass(frozen=True)
class RedirectConfig:
    """Frozen redirect policy configuration. Build it with RedirectConfigBuilder."""

    force_host: str | None = None
    force_tls: bool = False
    force_lower_case: bool = False
    force_lower_case_ignore: re.Pattern[str] | None = None
    force_trailing_slash: bool = False
    force_trailing_slash_ignore: re.Pattern[str] | None = None
    force_no_trailing_slash: bool = False
    force_no_trailing_slash_ignore: re.Pattern[str] | None = None
    exact_redirects: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    regex_redirects: tuple[RegexRedirect, ...] = ()


DEFAULT_CONFIG = RedirectConfig()


class RedirectConfigBuilder:
    """
    Collects policies and redirect tables, then freezes them.

    Loading happens here, before build(). The built config is shared
    read-only by every request.
    """

    def __init__(
        self,
        *,
        force_host: str | None = None,
        force_tls: bool = False,
        force_lower_case: bool = False,
        force_lower_case_ignore: str | None = None,
        force_trailing_slash: bool = False,
        force_trailing_slash_ignore: str | None = None,
        force_no_trailing_slash: bool = False,
        force_no_trailing_slash_ignore: str | None = None,
    ) -> None:
        self._force_host = force_host or None
        self._force_tls = force_tls
        self._force_lower_case = force_lower_case
        self._force_lower_case_ignore = _compile_optional(
            force_lower_case_ignore, "force_lower_case_ignore"
        )
        self._force_trailing_slash = force_trailing_slash
        self._force_trailing_slash_ignore = _compile_optional(
            force_trailing_slash_ignore, "force_trailing_slash_ignore"
        )
        self._force_no_trailing_slash = force_no_trailing_slash
        self._force_no_trailing_slash_ignore = _compile_optional(
            force_no_trailing_slash_ignore, "force_no_trailing_slash_ignore"
        )
        self._exact: dict[str, str] = {}
        self._regex: list[RegexRedirect] = []

    def add_exact_redirect(self, path: str, target: str) -> RedirectConfigBuilder:
        """Add (or replace) an exact path redirect."""
        self._exact[path] = target
        return self

    def add_regex_redirect(self, expression: str, replacement: str) -> RedirectConfigBuilder:
        """Append a regex redirect after the existing ones."""
        self._regex.append(RegexRedirect(compile_pattern(expression), replacement))
        return self

    def extend_exact_redirects(self, records: Iterable[tuple[str, str]]) -> RedirectConfigBuilder:
        self._exact.update(records)
        return self

    def extend_regex_redirects(self, records: Iterable[tuple[str, str]]) -> RedirectConfigBuilder:
        """Append regex redirects; nothing is added if any pattern is invalid."""
        compiled = [RegexRedirect(compile_pattern(expr), repl) for expr, repl in records]
        self._regex.extend(compiled)
        return self

    def load_exact_redirects(
        self,
        path: str | Path,
        source: RecordSourcePort | None = None,
    ) -> int:
        """
        Load exact redirects from a two-column table.

        Returns the number of records loaded. An empty path loads nothing.
        The table is validated in full before anything is added.

        Raises:
            RedirectLoadError: missing, unreadable or malformed table.
        """
        if not path:
            return 0

        table_path = Path(path)
        rows = _read_table(table_path, source)
        self._exact.update((key, value) for _, key, value in rows)

        logger.info("Loaded %d exact redirects from %s", len(rows), table_path)
        return len(rows)

    def load_regex_redirects(
        self,
        path: str | Path,
        source: RecordSourcePort | None = None,
    ) -> int:
        """
        Load regex redirects from a two-column table (pattern, replacement).

        Patterns keep file order. Every pattern is compiled before any is added.

        Raises:
            RedirectLoadError: missing, unreadable or malformed table, or an
                invalid pattern.
        """
        if not path:
            return 0

        table_path = Path(path)
        compiled: list[RegexRedirect] = []
        for record, expression, replacement in _read_table(table_path, source):
            try:
                pattern = compile_pattern(expression)
            except RedirectConfigError as e:
                raise RedirectLoadError(
                    RedirectConfigError.INVALID_PATTERN,
                    table_path,
                    e.message,
                    record=record,
                ) from e
            compiled.append(RegexRedirect(pattern, replacement))

        self._regex.extend(compiled)

        logger.info("Loaded %d regex redirects from %s", len(compiled), table_path)
        return len(compiled)

    def build(self) -> RedirectConfig:
        """Freeze the collected configuration."""
        return RedirectConfig(
            force_host=self._force_host,
            force_tls=self._force_tls,
            force_lower_case=self._force_lower_case,
            force_lower_case_ignore=self._force_lower_case_ignore,
            force_trailing_slash=self._force_trailing_slash,
            force_trailing_slash_ignore=self._force_trailing_slash_ignore,
            force_no_trailing_slash=self._force_no_trailing_slash,
            force_no_trailing_slash_ignore=self._force_no_trailing_slash_ignore,
            exact_redirects=MappingProxyType(dict(self._exact)),
            regex_redirects=tuple(self._regex),
        )


def _read_table(
    path: Path,
    source: RecordSourcePort | None,
) -> list[tuple[int, str, str]]:
    """Read a two-column table into (record number, key, value) rows."""
    if source is None:
        from .adapters.csv_source import default_record_source

        source = default_record_source

    if not source.exists(path):
        raise RedirectLoadError(RedirectLoadError.NOT_FOUND, path, "redirect table not found")

    try:
        records = source.read_records(path)
    except FileNotFoundError as e:
        raise RedirectLoadError(RedirectLoadError.NOT_FOUND, path, str(e)) from e
    except (OSError, ValueError) as e:
        raise RedirectLoadError(RedirectLoadError.UNREADABLE, path, str(e)) from e

    rows: list[tuple[int, str, str]] = []
    for record, fields in enumerate(records, start=1):
        if not fields:
            continue
        if len(fields) != 2:
            raise RedirectLoadError(
                RedirectLoadError.MALFORMED_RECORD,
                path,
                f"expected 2 fields, got {len(fields)}",
                record=record,
            )
        rows.append((record, fields[0], fields[1]))

    return rows


# --- Redirect Engine ---


@dataclass(frozen=True)
class RedirectDecision:
    """Where to send a request and with which status."""

    location: str
    status_code: int = MOVED_PERMANENTLY
    reasons: tuple[str, ...] = ()


class RedirectEngine:
    """
    Redirect engine.

    Pure function of (config, request): nothing is mutated while serving,
    so one engine can be shared by every concurrent request.
    """

    def __init__(self, config: RedirectConfig | None = None) -> None:
        """Initialize engine."""
        self._config = config or DEFAULT_CONFIG

    @property
    def config(self) -> RedirectConfig:
        return self._config

    # --- Policy predicates ---

    def _needs_tls(self, request: RequestView) -> bool:
        return self._config.force_tls and not request.secure

    def _needs_host(self, request: RequestView) -> bool:
        force_host = self._config.force_host
        return bool(force_host) and request.effective_host != force_host

    def _needs_lower_case(self, path: str) -> bool:
        config = self._config
        if not config.force_lower_case or path.lower() == path:
            return False
        return not _ignored(config.force_lower_case_ignore, path)

    def _needs_trailing_slash(self, path: str) -> bool:
        config = self._config
        if not config.force_trailing_slash or path == "/" or path.endswith("/"):
            return False
        return not _ignored(config.force_trailing_slash_ignore, path)

    def _needs_no_trailing_slash(self, path: str) -> bool:
        config = self._config
        if not config.force_no_trailing_slash or path == "/" or not path.endswith("/"):
            return False
        return not _ignored(config.force_no_trailing_slash_ignore, path)

    def _first_regex(self, path: str) -> RegexRedirect | None:
        for rule in self._config.regex_redirects:
            if rule.matches(path):
                return rule
        return None

    # --- Public API ---

    def reasons(self, request: RequestView) -> tuple[str, ...]:
        """Names of every policy that wants to change this request, in order."""
        path = request.path
        checks = (
            ("tls", self._needs_tls(request)),
            ("host", self._needs_host(request)),
            ("lower_case", self._needs_lower_case(path)),
            ("trailing_slash", self._needs_trailing_slash(path)),
            ("no_trailing_slash", self._needs_no_trailing_slash(path)),
            ("regex", self._first_regex(path) is not None),
            ("exact", path in self._config.exact_redirects),
        )
        return tuple(name for name, applies in checks if applies)

    def should_redirect(self, request: RequestView) -> bool:
        """Check whether the request has to be redirected."""
        return bool(self.reasons(request))

    def redirect_url(self, request: RequestView) -> str:
        """
        Compute the canonical URL for a request.

        Path transforms run in policy order; regex and exact redirects see
        the output of the earlier transforms.

        Raises:
            RedirectRewriteError: if the URL cannot be reassembled.
        """
        config = self._config

        scheme = "https" if self._needs_tls(request) else request.scheme
        host = config.force_host or request.effective_host

        path = request.path
        if self._needs_lower_case(request.path):
            path = path.lower()

        if self._needs_trailing_slash(request.path):
            path = path + "/"
        elif self._needs_no_trailing_slash(request.path):
            path = path[:-1]

        rule = self._first_regex(path)
        if rule is not None:
            path = rule.apply(path)

        path = config.exact_redirects.get(path, path)

        return _build_url(scheme, host, path, request.query)

    def evaluate(self, request: RequestView) -> RedirectDecision | None:
        """Return the redirect for a request, or None to let it through."""
        reasons = self.reasons(request)
        if not reasons:
            return None

        location = self.redirect_url(request)
        logger.debug(
            "Redirecting %s://%s%s to %s (%s)",
            request.scheme,
            request.effective_host,
            request.path,
            location,
            ", ".join(reasons),
        )
        return RedirectDecision(location=location, reasons=reasons)


def _ignored(pattern: re.Pattern[str] | None, path: str) -> bool:
    return pattern is not None and pattern.search(path) is not None


def _build_url(scheme: str, host: str, path: str, query: str) -> str:
    try:
        parts = urlsplit(f"{scheme}://{host}")
        _ = parts.port  # port is only validated on access
        quoted_path = quote(path, safe=_PATH_SAFE)
        quoted_query = quote(query.encode("latin-1"), safe=_QUERY_SAFE)
    except ValueError as e:
        raise RedirectRewriteError(f"Cannot rebuild redirect URL for {host!r}{path!r}") from e

    return urlunsplit((parts.scheme, parts.netloc, quoted_path, quoted_query, ""))


# --- Factory ---


def create_redirect_engine(config: RedirectConfig | None = None) -> RedirectEngine:
    """Create a RedirectEngine."""
    return RedirectEngine(config=config)
