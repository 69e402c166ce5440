"""FastAPI application entry point."""

import logging
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, FastAPI

from articlechat.api.chat import router as chat_router
from articlechat.api.exceptions import register_exception_handlers
from articlechat.configs.config import AppConfig, get_app_config
from articlechat.core.llm.deps import build_completion_client
from articlechat.core.metrics import setup_metrics
from articlechat.infra.db import build_db, build_message_recorder
from articlechat.infra.identity import build_identity_provider
from articlechat.infra.lifespan import inject
from articlechat.infra.logging import setup_logging
from articlechat.infra.ratelimit import build_rate_limiter
from articlechat.infra.telemetry import build_telemetry, init_telemetry

logger = logging.getLogger(__name__)


@inject
async def lifespan(
    app: FastAPI,
    _db: Annotated[None, Depends(build_db)],
    _telemetry: Annotated[None, Depends(build_telemetry)],
    _rate_limiter: Annotated[None, Depends(build_rate_limiter)],
    _recorder: Annotated[None, Depends(build_message_recorder)],
    _completion: Annotated[None, Depends(build_completion_client)],
    _identity: Annotated[None, Depends(build_identity_provider)],
) -> AsyncGenerator[None, None]:
    """Every resource is owned by its builder; nothing to do here."""
    logger.info("ArticleChat started.")
    yield
    logger.info("ArticleChat shutting down.")


def create_app(config: AppConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Middleware and exception handlers are installed here, before the
    application starts; runtime resources are created by the lifespan.
    """
    pinned = config is not None
    config = config or get_app_config()
    setup_logging(config.logging)

    app = FastAPI(
        title="ArticleChat",
        description="Article-grounded chat with cited sources and web search",
        version="0.1.0",
        lifespan=lifespan,
    )
    if pinned:
        # An explicit config replaces the hot-reloaded one everywhere.
        app.dependency_overrides[get_app_config] = lambda: config

    init_telemetry(app, config.tracing)
    setup_metrics(app, config)
    register_exception_handlers(app)
    app.include_router(chat_router)

    @app.get("/health", tags=["health"])
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
