from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

import structlog
from fastapi import FastAPI, HTTPException
from starlette.middleware.cors import CORSMiddleware

from behaviorlab.api.router import api_router
from behaviorlab.config import settings
from behaviorlab.core.exceptions import BehaviorLabError, behaviorlab_error_handler, http_exception_handler
from behaviorlab.core.logging import setup_logging
from behaviorlab.core.middleware import RequestIdMiddleware, TimingMiddleware
from behaviorlab.db.session import init_db

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging(debug=settings.debug)
    logger.info("starting_behaviorlab", app_name=settings.app_name, debug=settings.debug)
    await init_db()
    yield
    logger.info("shutting_down_behaviorlab")


def create_app() -> FastAPI:
    app = FastAPI(
        title="BehaviorLab API",
        description="Persona-driven behavior experiments for conversational agents",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Middleware (order matters: last added = first executed)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(TimingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    # Exception handlers
    app.add_exception_handler(BehaviorLabError, behaviorlab_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, http_exception_handler)  # type: ignore[arg-type]

    # Routes
    app.include_router(api_router, prefix="/api/v1")

    return app


app = create_app()
