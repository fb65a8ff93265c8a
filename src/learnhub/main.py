"""FastAPI application factory."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from learnhub.auth.cleanup import run_token_cleanup
from learnhub.auth.router import router as auth_router
from learnhub.config import Settings, get_settings
from learnhub.database import Database
from learnhub.health.router import router as health_router
from learnhub.middleware import setup_middleware
from learnhub.progress.router import router as progress_router
from learnhub.redis_client import close_redis, init_redis


def _lifespan(settings: Settings, database: Database):  # noqa: ANN202
    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
        """Startup and shutdown lifecycle."""
        if settings.redis_url:
            await init_redis(settings.redis_url)

        # Purges at startup, then on the configured interval
        cleanup_task = asyncio.create_task(
            run_token_cleanup(database, settings.token_cleanup_interval_hours * 3600)
        )

        yield

        cleanup_task.cancel()
        try:
            await cleanup_task
        except asyncio.CancelledError:
            pass

        await database.dispose()
        if settings.redis_url:
            await close_redis()

    return lifespan


def create_app(settings: Settings | None = None, database: Database | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    ``database`` defaults to one built from ``settings.database_url``; tests
    pass their own.
    """
    if settings is None:
        settings = get_settings()
    if database is None:
        database = Database.from_settings(settings)

    app = FastAPI(
        title="LearnHub API",
        description="Backend API for LearnHub: accounts, sessions and gamified learning progress",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=_lifespan(settings, database),
    )
    app.state.database = database
    app.state.settings = settings

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(progress_router)

    return app
