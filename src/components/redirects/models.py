"""
Redirects component input/output models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from ._impl import RequestView

TableKind = Literal["exact", "regex"]

# --- Validation Error ---


@dataclass(frozen=True)
class RedirectValidationError:
    """Redirect validation error."""

    code: str
    message: str
    field: str | None = None


# --- Input Models ---


@dataclass(frozen=True)
class DecideInput:
    """Input for checking whether a request needs a redirect."""

    request: RequestView


@dataclass(frozen=True)
class RewriteInput:
    """Input for computing the redirect for a request."""

    request: RequestView


@dataclass(frozen=True)
class LoadRedirectsInput:
    """Input for loading a redirect table into a config builder."""

    path: str
    kind: TableKind = "exact"


# --- Output Models ---


@dataclass(frozen=True)
class DecideOutput:
    """Output for the decide operation."""

    redirect: bool
    reasons: tuple[str, ...] = ()


@dataclass(frozen=True)
class RewriteOutput:
    """Output for the rewrite operation."""

    location: str | None
    status_code: int
    errors: list[RedirectValidationError] = field(default_factory=list)
    success: bool = True


@dataclass(frozen=True)
class LoadRedirectsOutput:
    """Output for loading a redirect table."""

    loaded: int
    errors: list[RedirectValidationError] = field(default_factory=list)
    success: bool = True
