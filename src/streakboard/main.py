"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from streakboard.auth.router import router as auth_router
from streakboard.config import get_settings
from streakboard.database import close_db, init_db
from streakboard.health.router import router as health_router
from streakboard.leaderboard.router import router as leaderboard_router
from streakboard.middleware import setup_middleware
from streakboard.organizations.router import router as organizations_router
from streakboard.quizzes.router import router as quizzes_router
from streakboard.redis_client import close_redis, init_redis
from streakboard.submissions.router import router as submissions_router
from streakboard.tracks.router import router as tracks_router


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url, settings.redis_max_connections)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Streakboard API",
        description="Recurring submissions, verification, streaks and weekly leaderboards",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(organizations_router)
    app.include_router(tracks_router)
    app.include_router(submissions_router)
    app.include_router(leaderboard_router)
    app.include_router(quizzes_router)

    return app


app = create_app()
