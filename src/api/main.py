import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI

from src.api.deps import get_redirect_engine, get_settings
from src.api.middleware import CanonicalRedirectMiddleware

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()

    # Build the redirect engine before serving (fail-fast)
    try:
        get_redirect_engine()
    except Exception as e:
        logger.critical("Redirect rules load failed from %s: %s", settings.rules_path, e)
        sys.exit(1)

    yield


app = FastAPI(
    title="Canonical Redirect",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(CanonicalRedirectMiddleware, engine_provider=get_redirect_engine)


@app.get("/health")
def health_check() -> dict[str, Any]:
    """Health check endpoint."""
    return {"status": "ok", "service": "redirect"}
