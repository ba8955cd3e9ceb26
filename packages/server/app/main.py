"""
Connectry API Server

Entry point for the FastAPI application.
"""

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from redis.exceptions import RedisError

from app.core.config import get_settings
from app.core.database import engine, init_db
from app.core.errors import error_response, register_error_handlers
from app.core.logging import configure_logging
from app.core.middleware import (
    CSRFMiddleware,
    RequestContextMiddleware,
    SecurityHeadersMiddleware,
)
from app.core.redis import close_redis, get_redis
from app.api.v1 import router as api_v1_router
from app.api.v1.auth import router as auth_router

settings = get_settings()
log = structlog.get_logger()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging()

    app = FastAPI(
        title="Connectry",
        description="Marketplace connecting creators with clients who commission work.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    register_error_handlers(app)

    # Middleware (last added runs first)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(CSRFMiddleware)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-CSRF-Token", "X-Request-ID"],
    )

    app.include_router(auth_router, prefix="/auth", tags=["Authentication"])
    app.include_router(api_v1_router, prefix="/api/v1")

    # Uploaded work images
    app.mount(
        settings.storage_public_url,
        StaticFiles(directory=settings.storage_root, check_dir=False),
        name="storage",
    )

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check():
        """Readiness check: the database and Redis must both answer."""
        checks = {}
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            checks["database"] = "ok"
        except SQLAlchemyError as exc:
            log.error("ready.database_unavailable", error=str(exc))
            checks["database"] = "unavailable"

        try:
            redis = await get_redis()
            await redis.ping()
            checks["redis"] = "ok"
        except RedisError as exc:
            log.error("ready.redis_unavailable", error=str(exc))
            checks["redis"] = "unavailable"

        if any(v != "ok" for v in checks.values()):
            return error_response(503, "NOT_READY", "Service is not ready.", checks=checks)
        return {"status": "ready", **checks}

    @app.on_event("startup")
    async def on_startup():
        log.info("connectry.starting", debug=settings.debug)
        if settings.auto_create_tables:
            await init_db()
            log.info("connectry.tables_created")

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("connectry.shutting_down")
        await close_redis()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=settings.host, port=settings.port, reload=settings.debug)
