"""
FastAPI application entrypoint for the OAuth credential service.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from tokenkeeper.api.routes import router as api_router
from tokenkeeper.core.config import get_settings
from tokenkeeper.core.logging import configure_logging
from tokenkeeper.dependencies import get_state_registry


@asynccontextmanager
async def lifespan(app: FastAPI):
    registry = get_state_registry()
    registry.start_reclaimer(get_settings().state_reap_interval_seconds)
    try:
        yield
    finally:
        await registry.stop_reclaimer()


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="tokenkeeper",
        version="0.1.0",
        description="OAuth 2.0 authorization code + PKCE credential lifecycle service.",
        lifespan=lifespan,
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
