"""
Redirects component - canonical URL redirects.

Decides whether a request needs a redirect, computes the redirect
target, and loads redirect tables into a config builder.

Invariants:
- I1: Decide and rewrite agree; a request that needs a redirect gets a new URL
- I2: Regex redirects are applied first-match-wins in insertion order
- I3: A failed table load adds nothing to the builder
- I4: Redirect status is always 301; reconstruction failures are 500
"""

from __future__ import annotations

import logging

from ._impl import (
    MOVED_PERMANENTLY,
    RedirectConfigBuilder,
    RedirectEngine,
    RedirectLoadError,
    RedirectRewriteError,
)
from .models import (
    DecideInput,
    DecideOutput,
    LoadRedirectsInput,
    LoadRedirectsOutput,
    RedirectValidationError,
    RewriteInput,
    RewriteOutput,
)
from .ports import RecordSourcePort

logger = logging.getLogger(__name__)

INTERNAL_SERVER_ERROR = 500


# --- Component Entry Points ---


def run_decide(
    inp: DecideInput,
    *,
    engine: RedirectEngine,
) -> DecideOutput:
    """
    Check whether a request has to be redirected.

    Args:
        inp: Input containing the request view.
        engine: Redirect engine holding the frozen config.

    Returns:
        DecideOutput with the decision and the policies that triggered it.
    """
    reasons = engine.reasons(inp.request)
    return DecideOutput(redirect=bool(reasons), reasons=reasons)


def run_rewrite(
    inp: RewriteInput,
    *,
    engine: RedirectEngine,
) -> RewriteOutput:
    """
    Compute the redirect response for a request.

    Args:
        inp: Input containing the request view.
        engine: Redirect engine holding the frozen config.

    Returns:
        RewriteOutput with a 301 location, or a 500 with an error.
    """
    try:
        location = engine.redirect_url(inp.request)
    except RedirectRewriteError as e:
        return RewriteOutput(
            location=None,
            status_code=INTERNAL_SERVER_ERROR,
            errors=[
                RedirectValidationError(
                    code="redirection_error",
                    message=str(e),
                )
            ],
            success=False,
        )

    return RewriteOutput(
        location=location,
        status_code=MOVED_PERMANENTLY,
        errors=[],
        success=True,
    )


def run_load(
    inp: LoadRedirectsInput,
    *,
    builder: RedirectConfigBuilder,
    source: RecordSourcePort | None = None,
) -> LoadRedirectsOutput:
    """
    Load a redirect table into a config builder.

    Args:
        inp: Input containing the table path and kind ("exact" or "regex").
        builder: Builder that receives the records.
        source: Optional record source port (defaults to local CSV files).

    Returns:
        LoadRedirectsOutput with the number of records loaded or errors.
    """
    if inp.kind == "exact":
        load = builder.load_exact_redirects
    elif inp.kind == "regex":
        load = builder.load_regex_redirects
    else:
        return LoadRedirectsOutput(
            loaded=0,
            errors=[
                RedirectValidationError(
                    code="invalid_input",
                    message=f"Unknown redirect table kind: {inp.kind}",
                    field="kind",
                )
            ],
            success=False,
        )

    try:
        loaded = load(inp.path, source=source)
    except RedirectLoadError as e:
        logger.warning("Rejected %s redirect table: %s", inp.kind, e)
        return LoadRedirectsOutput(
            loaded=0,
            errors=[
                RedirectValidationError(
                    code=e.code,
                    message=e.message,
                    field="path",
                )
            ],
            success=False,
        )

    return LoadRedirectsOutput(loaded=loaded, errors=[], success=True)


def run(
    inp: DecideInput | RewriteInput,
    *,
    engine: RedirectEngine,
) -> DecideOutput | RewriteOutput:
    """
    Main entry point for request handling.

    Dispatches to the appropriate handler based on input type.
    """
    if isinstance(inp, DecideInput):
        return run_decide(inp, engine=engine)
    elif isinstance(inp, RewriteInput):
        return run_rewrite(inp, engine=engine)
    else:
        raise ValueError(f"Unknown input type: {type(inp)}")
