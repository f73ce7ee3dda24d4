import os
from functools import lru_cache
from pathlib import Path

from src.components.redirects import RedirectEngine, create_redirect_engine
from src.rules.loader import load_redirect_config


# --- Settings ---
class Settings:
    def __init__(self) -> None:
        self.base_dir = Path(os.getcwd())
        self.rules_path = Path(
            os.environ.get("REDIRECT_RULES_PATH", str(self.base_dir / "redirect_rules.yaml"))
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()


# --- Redirect Engine ---
@lru_cache
def get_redirect_engine() -> RedirectEngine:
    """Load the rules and tables once; the frozen engine is shared by all requests."""
    settings = get_settings()
    return create_redirect_engine(load_redirect_config(settings.rules_path))
