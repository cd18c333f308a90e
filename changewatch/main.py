"""FastAPI application entry point.

This module initializes the FastAPI application with all routes,
middleware, error handlers and lifecycle handlers.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from cryptography.fernet import Fernet
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from sqlalchemy import text

from changewatch import __version__
from changewatch.api.deps import get_db_session
from changewatch.api.routes import (
    base_data_router,
    executions_router,
    integrations_router,
    oauth_router,
)
from changewatch.config import settings
from changewatch.core.errors import ChangewatchError

# Configure structured logging
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer() if not settings.debug else structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        getattr(logging, settings.log_level)
    ),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler.

    Handles startup and shutdown events.
    """
    logger.info(
        "application_starting",
        host=settings.host,
        port=settings.port,
        debug=settings.debug,
        log_level=settings.log_level,
    )

    # Validate critical configuration
    try:
        Fernet(settings.encryption_key.get_secret_value().encode())
        logger.info("encryption_key_validated")
    except ValueError as e:
        logger.error("encryption_key_invalid", error=str(e))
        raise ValueError("Invalid ENCRYPTION_KEY format") from e

    logger.info(
        "configuration_loaded",
        encryption_key=settings.get_masked_key("encryption_key"),
        figma_api_base_url=settings.figma_api_base_url,
        http_timeout=settings.http_timeout,
        token_refresh_margin_seconds=settings.token_refresh_margin_seconds,
    )

    yield

    logger.info("application_shutting_down")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Changewatch",
        description="Activity log change detection for OAuth-connected design tools",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register API routes
    app.include_router(oauth_router, prefix="/api/v1")
    app.include_router(integrations_router, prefix="/api/v1")
    app.include_router(base_data_router, prefix="/api/v1")
    app.include_router(executions_router, prefix="/api/v1")

    @app.exception_handler(ChangewatchError)
    async def changewatch_error_handler(
        request: Request,
        exc: ChangewatchError,
    ) -> JSONResponse:
        """Render expected failures as ``{"error": ..., "details": ...}``."""
        logger.info(
            "request_failed",
            path=request.url.path,
            method=request.method,
            error_code=exc.code,
            status_code=exc.status_code,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        errors = [
            {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid request", "details": {"errors": errors}},
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle uncaught exceptions.

        Never expose internal error details in production.
        """
        logger.exception(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
        )

        if settings.debug:
            error = str(exc)
        else:
            error = "An internal error occurred"

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": error},
        )

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint for load balancers and monitoring."""
        return {"status": "healthy", "version": __version__}

    @app.get("/ready", tags=["health"], response_model=None)
    async def ready_check() -> dict[str, str] | JSONResponse:
        """Readiness check including database connectivity."""
        try:
            async for session in get_db_session():
                await session.execute(text("SELECT 1"))
            return {"status": "ready"}
        except Exception as e:
            logger.error("readiness_check_failed", error=str(e))
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"status": "not_ready", "error": "database_unavailable"},
            )

    # Instrument with OpenTelemetry
    FastAPIInstrumentor.instrument_app(app)

    return app


# Create application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "changewatch.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
