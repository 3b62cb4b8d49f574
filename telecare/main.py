"""FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from telecare.api.v1.router import api_router
from telecare.config import settings
from telecare.core.exceptions import AppException
from telecare.core.firebase import initialize_firebase
from telecare.core.redis_client import check_redis_connection, close_redis_connection
from telecare.database import check_database_connection, engine
from telecare.middleware.error_handler import (
    app_exception_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from telecare.middleware.logging import LoggingMiddleware, configure_logging

configure_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Connect to Firebase, PostgreSQL and Redis on startup; release them on shutdown."""
    logger.info("application_startup", environment=settings.environment)

    try:
        initialize_firebase(settings.firebase_credentials_path, settings.firebase_config_json)
    except Exception as e:
        # Booking and lifecycle endpoints still work with already-issued tokens
        logger.warning("firebase_initialization_failed", error=str(e))

    database_ok = await check_database_connection()
    redis_ok = await check_redis_connection()
    logger.info("dependencies_checked", database=database_ok, redis=redis_ok)

    yield

    await engine.dispose()
    close_redis_connection()
    logger.info("application_shutdown")


def create_app() -> FastAPI:
    """Build the API with its middleware, error handlers and metrics."""
    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Telehealth appointment booking, payment and consultation lifecycle API",
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    application.add_middleware(LoggingMiddleware)

    handlers = [
        (AppException, app_exception_handler),
        (StarletteHTTPException, http_exception_handler),
        (RequestValidationError, validation_exception_handler),
        (Exception, general_exception_handler),
    ]
    for exc_class, handler in handlers:
        application.add_exception_handler(exc_class, handler)  # type: ignore[arg-type]

    application.include_router(api_router, prefix=settings.api_v1_prefix)

    Instrumentator(
        should_group_status_codes=True,
        excluded_handlers=["/docs", "/redoc", "/openapi.json", "/metrics"],
    ).instrument(application).expose(application, endpoint="/metrics", include_in_schema=False)

    @application.get("/", tags=["Root"])
    async def root() -> dict[str, str]:
        return {"name": settings.app_name, "version": settings.app_version}

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "telecare.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )
