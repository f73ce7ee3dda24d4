"""
Redirects component - canonical URL redirects.
"""

from ._impl import (
    DEFAULT_CONFIG,
    MOVED_PERMANENTLY,
    RedirectConfig,
    RedirectConfigBuilder,
    RedirectConfigError,
    RedirectDecision,
    RedirectEngine,
    RedirectLoadError,
    RedirectRewriteError,
    RegexRedirect,
    RequestView,
    compile_pattern,
    create_redirect_engine,
    expand_template,
)
from .component import (
    run,
    run_decide,
    run_load,
    run_rewrite,
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

__all__ = [
    # Entry points
    "run",
    "run_decide",
    "run_load",
    "run_rewrite",
    # Input models
    "DecideInput",
    "LoadRedirectsInput",
    "RewriteInput",
    # Output models
    "DecideOutput",
    "LoadRedirectsOutput",
    "RedirectValidationError",
    "RewriteOutput",
    # Ports
    "RecordSourcePort",
    # _impl re-exports
    "DEFAULT_CONFIG",
    "MOVED_PERMANENTLY",
    "RedirectConfig",
    "RedirectConfigBuilder",
    "RedirectConfigError",
    "RedirectDecision",
    "RedirectEngine",
    "RedirectLoadError",
    "RedirectRewriteError",
    "RegexRedirect",
    "RequestView",
    "compile_pattern",
    "create_redirect_engine",
    "expand_template",
]
