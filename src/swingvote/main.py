"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from swingvote.admin.router import router as admin_router
from swingvote.config import get_settings
from swingvote.database import close_db, init_db
from swingvote.gamification.router import router as gamification_router
from swingvote.health.router import router as health_router
from swingvote.middleware import setup_middleware
from swingvote.redis_client import close_redis, init_redis
from swingvote.referrals.router import router as referrals_router
from swingvote.spin_wheel.router import router as spin_wheel_router
from swingvote.votes.router import router as votes_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)
    logger.info("startup_complete", environment=settings.environment, version=settings.app_version)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Swing Vote API",
        description="Voting, milestones and rewards backend for the Swing magazine model contests",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(votes_router)
    app.include_router(gamification_router)
    app.include_router(spin_wheel_router)
    app.include_router(admin_router)
    app.include_router(referrals_router)

    return app


app = create_app()
