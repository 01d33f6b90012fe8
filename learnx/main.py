from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from learnx.api.courses import router as courses_router
from learnx.api.health import router as health_router
from learnx.api.lessons import router as lessons_router
from learnx.api.pathways import router as pathways_router
from learnx.api.tutor import router as tutor_router
from learnx.core.config import SETTINGS
from learnx.core.logging import setup_logging
from learnx.db.engine import lifespan_db
from learnx.db.redis import lifespan_redis
from learnx.middleware.metrics import MetricsMiddleware
from learnx.middleware.request_context import RequestContextMiddleware
from learnx.services.context import AppContext, build_context

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


def create_app(context: AppContext | None = None) -> FastAPI:
    """Build the application.  Tests pass their own ``context``."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        ctx = context or build_context(SETTINGS)
        app.state.context = ctx
        # Nested so teardown runs in reverse order even if one fails.
        async with lifespan_db(ctx.db_engine):
            async with lifespan_redis(ctx.redis):
                yield

    app = FastAPI(
        title="learnx",
        lifespan=lifespan,
        docs_url="/docs" if SETTINGS.is_dev else None,
        redoc_url="/redoc" if SETTINGS.is_dev else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Last-added runs first: RequestContext -> Metrics -> CORS -> handler,
    # so every request has an id before metrics are recorded.
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestContextMiddleware)

    app.include_router(health_router)
    app.include_router(courses_router)
    app.include_router(pathways_router)
    app.include_router(lessons_router)
    app.include_router(tutor_router)
    return app


app = create_app()

logger.info(
    "learnx started  env=%s log_level=%s port=%d content=%s docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    SETTINGS.content_backend,
    "on" if SETTINGS.is_dev else "off",
)
