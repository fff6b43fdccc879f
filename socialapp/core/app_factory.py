"""Application factory helpers to keep socialapp/main.py lightweight."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.responses import ORJSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session
from starlette.middleware.trustedhost import TrustedHostMiddleware

from socialapp.api.router import api_router
from socialapp.api.websocket import router as websocket_router
from socialapp.core.config import settings
from socialapp.core.database import engine, get_db
from socialapp.core.error_handlers import register_exception_handlers
from socialapp.core.logging_config import setup_logging
from socialapp.core.middleware import LoggingMiddleware, limiter
import socialapp.models.registry  # noqa: F401  registers every table on Base.metadata
from socialapp.models import Base
from socialapp.modules.notifications.realtime import manager

logger = logging.getLogger(__name__)


def _configure_app(app: FastAPI) -> None:
    allowed_hosts = getattr(settings, "allowed_hosts", None) or ["*"]
    if not (len(allowed_hosts) == 1 and allowed_hosts[0] == "*"):
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=allowed_hosts)

    # Logs all requests and responses with timing
    app.add_middleware(LoggingMiddleware)

    app.include_router(api_router)
    app.include_router(websocket_router)


def _register_routes(app: FastAPI) -> None:
    @app.get("/", tags=["Health"])
    async def root():
        return {"message": f"Welcome to {settings.app_name}"}

    # Liveness: is the process serving requests?
    @app.get("/livez", tags=["Health"])
    async def livez():
        return {"status": "ok"}

    # Readiness: can we reach the database?
    @app.get("/readyz", tags=["Health"])
    def readyz(db: Session = Depends(get_db)):
        try:
            db.execute(text("SELECT 1"))
        except Exception as e:
            logger.error(f"Readiness check failed (Database): {e}")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail={"database": "disconnected"},
            )
        return {"status": "ready", "details": {"database": "connected"}}


def _lifespan_factory():
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        Base.metadata.create_all(bind=engine)
        app.state.connection_manager = manager

        yield

        # Shutdown
        logger.info("Hub metrics at shutdown: %s", manager.metrics())

    return lifespan


def create_app() -> FastAPI:
    """
    Application Factory to create and configure the FastAPI application.
    Integrates Logging, Error Handling, Rate Limiting, and Middleware.
    """
    setup_logging(
        log_level=getattr(settings, "log_level", "INFO"),
        log_dir=getattr(settings, "log_dir", "logs"),
        app_name="socialapp",
        max_bytes=10 * 1024 * 1024,  # 10 MB
        backup_count=5,
        use_json=getattr(settings, "use_json_logs", False),
        use_colors=True,
    )

    app = FastAPI(
        title=settings.app_name,
        description="Social network API: posts, comments, reactions, follows and chat",
        version="1.0.0",
        lifespan=_lifespan_factory(),
        default_response_class=ORJSONResponse,
    )

    app.state.environment = settings.environment

    # RateLimitExceeded is rendered by register_exception_handlers
    app.state.limiter = limiter
    if hasattr(limiter, "enabled"):
        limiter.enabled = settings.environment.lower() != "test" and (
            os.getenv("APP_ENV", settings.environment).lower() != "test"
        )

    _configure_app(app)
    _register_routes(app)
    register_exception_handlers(app)

    logger.info("Application startup complete")
    return app


__all__ = ["create_app"]
