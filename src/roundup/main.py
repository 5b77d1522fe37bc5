"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from roundup.config import get_settings
from roundup.database import close_db, init_db
from roundup.health.router import router as health_router
from roundup.leaderboard.router import router as leaderboard_router
from roundup.middleware import setup_middleware
from roundup.redis_client import close_redis, init_redis
from roundup.rounds.router import router as rounds_router
from roundup.statistics.router import router as statistics_router
from roundup.voting.router import router as voting_router


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Roundup API",
        description="Themed submission rounds: voting, scoring, leaderboards and player statistics",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(rounds_router)
    app.include_router(voting_router)
    app.include_router(leaderboard_router)
    app.include_router(statistics_router)

    return app


app = create_app()
