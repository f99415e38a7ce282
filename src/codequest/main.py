"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from codequest.challenges.router import router as challenges_router
from codequest.config import get_settings
from codequest.database import close_db, init_db
from codequest.execution.router import router as code_router
from codequest.health.router import router as health_router
from codequest.journeys.router import router as journeys_router
from codequest.middleware import setup_middleware
from codequest.redis_client import close_redis, init_redis

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    missing = settings.missing_secrets()
    if missing:
        logger.error("missing_required_secrets", missing=missing)
        msg = f"Missing required configuration: {', '.join(missing)}"
        raise RuntimeError(msg)

    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="CodeQuest API",
        description="Backend API for CodeQuest: coding journeys and human-versus-AI challenges",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(challenges_router)
    app.include_router(journeys_router)
    app.include_router(code_router)

    return app


app = create_app()
