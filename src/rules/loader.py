import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from src.components.redirects import (
    RecordSourcePort,
    RedirectConfig,
    RedirectConfigBuilder,
)
from src.rules.models import RedirectPolicyRules, Rules

logger = logging.getLogger(__name__)


def load_rules(path: Path) -> Rules:
    """
    Load and validate the redirect rules file.
    Raises FileNotFoundError if file missing.
    Raises ValueError if the YAML or the schema is invalid.
    """
    if not path.exists():
        raise FileNotFoundError(f"Rules file not found at: {path}")

    with open(path) as f:
        content = f.read()

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML syntax in rules file: {e}") from e

    try:
        rules = Rules.model_validate(data or {})
    except ValidationError as e:
        # Re-raise with a clear message for the caller/logs
        raise ValueError(f"Rules validation failed:\n{e}") from e

    if rules.redirects.force_trailing_slash and rules.redirects.force_no_trailing_slash:
        logger.warning(
            "Both force_trailing_slash and force_no_trailing_slash are enabled in %s; "
            "force_trailing_slash takes precedence",
            path,
        )

    return rules


def _resolve_table(table: str | None, base_dir: Path) -> Path | None:
    if not table:
        return None
    table_path = Path(table)
    if not table_path.is_absolute():
        table_path = base_dir / table_path
    return table_path


def build_redirect_config(
    rules: Rules,
    base_dir: Path,
    source: RecordSourcePort | None = None,
) -> RedirectConfig:
    """
    Build the frozen redirect config described by the rules.
    Relative table paths are resolved against base_dir.
    Raises RedirectLoadError if a redirect table can't be loaded.
    """
    policy: RedirectPolicyRules = rules.redirects
    builder = RedirectConfigBuilder(
        force_host=policy.force_host,
        force_tls=policy.force_tls,
        force_lower_case=policy.force_lower_case,
        force_lower_case_ignore=policy.force_lower_case_ignore,
        force_trailing_slash=policy.force_trailing_slash,
        force_trailing_slash_ignore=policy.force_trailing_slash_ignore,
        force_no_trailing_slash=policy.force_no_trailing_slash,
        force_no_trailing_slash_ignore=policy.force_no_trailing_slash_ignore,
    )

    exact_table = _resolve_table(policy.exact_redirects_file, base_dir)
    if exact_table is not None:
        builder.load_exact_redirects(exact_table, source=source)

    regex_table = _resolve_table(policy.regex_redirects_file, base_dir)
    if regex_table is not None:
        builder.load_regex_redirects(regex_table, source=source)

    return builder.build()


def load_redirect_config(
    path: Path,
    source: RecordSourcePort | None = None,
) -> RedirectConfig:
    """Load the rules file and build the redirect config it describes."""
    rules = load_rules(path)
    config = build_redirect_config(rules, path.parent, source=source)
    logger.info("Redirect rules loaded from %s", path)
    return config
