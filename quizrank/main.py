"""
QuizRank - quiz scoring and live leaderboard backend
FastAPI application factory
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from quizrank.api.v1.api import api_router
from quizrank.core.config import settings
from quizrank.core.database import SessionLocal, init_db
from quizrank.core.exceptions import UnavailableException, register_exception_handlers
from quizrank.core.logging import setup_logging
from quizrank.db.redis import RedisConnection
from quizrank.middleware import LoggingMiddleware, RequestIDMiddleware
from quizrank.services.registry import Services, build_services

logger = logging.getLogger(__name__)


def init_sentry() -> None:
    if not settings.SENTRY_DSN:
        return
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=1.0 if settings.DEBUG else 0.1,
        environment=settings.ENVIRONMENT,
    )
    logger.info("Sentry initialized")


async def warm_ledger(services: Services) -> None:
    """Rebuild the ledger from attempts so a fresh or in-memory backend starts consistent"""
    try:
        report = await services.leaderboard.rebuild_from_attempts()
    except UnavailableException as e:
        logger.warning(f"Leaderboard warm-up skipped: {e.message}")
        return
    logger.info(f"Leaderboard warmed with {report.users} users")


def create_app(services: Optional[Services] = None) -> FastAPI:
    """
    Build the application

    Args:
        services: Pre-wired services; when omitted the lifespan connects the
            database and Redis and wires them at startup
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

        redis = None
        reconcile_task = None
        if services is None:
            init_db()
            logger.info("Database initialized")

            redis = RedisConnection()
            await redis.connect()
            app.state.services = build_services(SessionLocal, redis=redis)
            await warm_ledger(app.state.services)

            if settings.LEDGER_RECONCILE_INTERVAL > 0:
                reconcile_task = asyncio.create_task(
                    app.state.services.leaderboard.reconcile_forever(
                        settings.LEDGER_RECONCILE_INTERVAL
                    )
                )

        yield

        logger.info("Shutting down application")
        if reconcile_task is not None:
            reconcile_task.cancel()
            try:
                await reconcile_task
            except asyncio.CancelledError:
                pass
        if redis is not None:
            await redis.disconnect()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description=settings.APP_DESCRIPTION,
        version=settings.APP_VERSION,
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    if services is not None:
        app.state.services = services

    # Middleware runs outermost-last: request id must be set before logging reads it
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "message": f"Welcome to {settings.APP_NAME}",
            "version": settings.APP_VERSION,
            "description": settings.APP_DESCRIPTION,
            "docs": "/docs",
            "health": f"{settings.API_V1_STR}/health",
        }

    app.include_router(api_router, prefix=settings.API_V1_STR)

    # Prometheus metrics endpoint (optional)
    if settings.DEBUG:
        from prometheus_client import make_asgi_app

        app.mount("/metrics", make_asgi_app())

    return app


setup_logging()
init_sentry()

app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "quizrank.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info",
    )
