import re

from pydantic import BaseModel, ConfigDict, field_validator


class RedirectPolicyRules(BaseModel):
    force_host: str | None = None
    force_tls: bool = False
    force_lower_case: bool = False
    force_lower_case_ignore: str | None = None
    force_trailing_slash: bool = False
    force_trailing_slash_ignore: str | None = None
    force_no_trailing_slash: bool = False
    force_no_trailing_slash_ignore: str | None = None
    exact_redirects_file: str | None = None
    regex_redirects_file: str | None = None

    model_config = ConfigDict(extra="forbid")

    @field_validator(
        "force_lower_case_ignore",
        "force_trailing_slash_ignore",
        "force_no_trailing_slash_ignore",
    )
    @classmethod
    def _check_pattern(cls, value: str | None) -> str | None:
        if value:
            try:
                re.compile(value)
            except re.error as e:
                raise ValueError(f"invalid regular expression {value!r}: {e}") from e
        return value


class Rules(BaseModel):
    redirects: RedirectPolicyRules = RedirectPolicyRules()

    model_config = ConfigDict(extra="forbid")
