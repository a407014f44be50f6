"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from shelfquest.catalog.router import router as catalog_router
from shelfquest.config import get_settings
from shelfquest.database import close_db, init_db
from shelfquest.gamification.router import router as gamification_router
from shelfquest.health.router import router as health_router
from shelfquest.middleware import setup_middleware
from shelfquest.progress.router import router as progress_router
from shelfquest.redis_client import close_redis, init_redis

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url, echo=settings.debug)
    await init_redis(settings.redis_url)
    logger.info("startup", version=settings.app_version, environment=settings.environment)

    yield

    await close_db()
    await close_redis()
    logger.info("shutdown")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="ShelfQuest API",
        description="Backend API for ShelfQuest, a gamified reading app",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(catalog_router)
    app.include_router(progress_router)
    app.include_router(gamification_router)

    return app


app = create_app()
