"""
FastAPI Gate Proxy Application Factory
======================================

This is the main entry point for the proxy service that sits between the
mobile client and the external upstream API.

Architecture:
    Mobile App → Gate Proxy (this service) → Upstream API
                      ↓
              deleted_accounts table

Routers:
    - /api/users/me (DELETE) : Account deletion, recorded as a tombstone
    - /api/login (POST)      : Login, refused for deleted accounts
    - /api/*                 : Verbatim relay to the upstream API
    - /health                : Health check endpoint

Environment Variables Required:
    - EXTERNAL_API_URL: Upstream API origin (e.g., "https://api.example.com")
    - DATABASE_URL: Deleted-account store (e.g., "postgresql://user:pass@db/gate")
    - LOG_LEVEL: Logging level (default: INFO)

Running the Service:
    Development:
        uvicorn gate_proxy.app.main:app --reload --host 0.0.0.0 --port 5000

    Production:
        uvicorn gate_proxy.app.main:app --host 0.0.0.0 --port 5000 --workers 4
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Dict, Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import messages
from .config import Settings, get_settings, validate_configuration
from .db import Base, DeletedAccountStore, create_db_engine, create_session_factory
from .errors import StoreError, StoreWriteError, UpstreamUnavailableError
from .models import ErrorResponse, HealthResponse
from .proxy.forwarder import unreachable_response
from .proxy.routes import proxy_router
from .state import AppState

SERVICE_NAME = "gate-proxy"
SERVICE_VERSION = "1.0.0"


# Configure structured JSON logging
def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup tasks:
        - Configure logging and report configuration problems
        - Create the pooled store engine (and the table when enabled)
        - Create the shared upstream HTTP client

    Shutdown tasks:
        - Close the upstream client
        - Dispose of the store connection pool
    """
    app_state: AppState = app.state.app_state
    settings = app_state.settings

    setup_logging(settings.LOG_LEVEL)
    logger = app_state.logger

    report = validate_configuration(settings)
    for error in report["errors"]:
        logger.error(f"Configuration error: {error}")
    for warning in report["warnings"]:
        logger.warning(f"Configuration warning: {warning}")

    logger.info(
        "Starting gate proxy",
        extra={
            "upstream": settings.upstream_base_url,
            "log_level": settings.LOG_LEVEL,
        }
    )

    if app_state.store is None:
        app_state.engine = create_db_engine(settings)
        if settings.AUTO_CREATE_SCHEMA:
            Base.metadata.create_all(app_state.engine)
            logger.info("Ensured deleted_accounts table exists")
        app_state.store = DeletedAccountStore(create_session_factory(app_state.engine))

    if app_state.upstream_client is None:
        app_state.upstream_client = httpx.AsyncClient(
            timeout=httpx.Timeout(
                settings.UPSTREAM_TIMEOUT_SECONDS,
                connect=settings.UPSTREAM_CONNECT_TIMEOUT_SECONDS,
            ),
            follow_redirects=False,
        )

    logger.info("Gate proxy started successfully")

    yield

    # Shutdown
    logger.info("Shutting down gate proxy")

    if app_state.upstream_client is not None:
        await app_state.upstream_client.aclose()
        app_state.upstream_client = None

    if app_state.engine is not None:
        app_state.engine.dispose()
        app_state.engine = None
        app_state.store = None

    logger.info("Gate proxy shutdown complete")


# Create FastAPI application
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory function.

    Args:
        settings: Explicit settings; loaded from the environment when omitted

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Gate Proxy",
        description="Upstream API proxy that blocks deleted accounts",
        version=SERVICE_VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.app_state = AppState(settings)

    origins = settings.allowed_origins_list
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=["*"]
        )

    app.include_router(
        proxy_router,
        prefix=settings.API_PREFIX,
        tags=["Upstream Proxy"]
    )

    @app.get("/health", tags=["System"], response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        return HealthResponse(status="ok", service=SERVICE_NAME, version=SERVICE_VERSION)

    @app.get("/", tags=["System"])
    async def root() -> Dict[str, object]:
        """
        Root endpoint with service information.

        Returns:
            dict: Service metadata and available endpoints
        """
        return {
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "description": "Upstream API proxy that blocks deleted accounts",
            "endpoints": {
                "health": "/health",
                "docs": "/docs",
                "api": settings.API_PREFIX,
            }
        }

    @app.exception_handler(UpstreamUnavailableError)
    async def upstream_unavailable_handler(request: Request, exc: UpstreamUnavailableError) -> JSONResponse:
        # already logged with its cause by the forwarder
        return unreachable_response()

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
        logging.getLogger("gate_proxy.main").error(
            f"Deleted-account store failure: {exc}",
            extra={"path": request.url.path, "http_method": request.method},
            exc_info=exc
        )
        # only a failed write means the deletion itself was lost
        message = messages.STORE_FAILURE if isinstance(exc, StoreWriteError) else messages.STORE_UNAVAILABLE
        return JSONResponse(status_code=500, content={"message": message})

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler for unhandled errors.

        Logs the error and returns a standardized error response.
        """
        logger = logging.getLogger("gate_proxy.main")
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "http_method": request.method,
                "exception_type": type(exc).__name__
            },
            exc_info=exc
        )

        body = ErrorResponse(
            error="internal_server_error",
            message=messages.INTERNAL_ERROR,
            detail=str(exc) if settings.LOG_LEVEL == "DEBUG" else None
        )
        return JSONResponse(status_code=500, content=body.model_dump())

    return app


def __getattr__(name: str) -> object:
    # `uvicorn gate_proxy.app.main:app` resolves the app lazily so importing
    # this module does not require the environment to be configured.
    if name == "app":
        return create_app()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


if __name__ == "__main__":
    settings = get_settings()

    uvicorn.run(
        "gate_proxy.app.main:app",
        host=settings.PROXY_HOST,
        port=settings.PROXY_PORT,
        reload=True,
        log_level=settings.LOG_LEVEL.lower()
    )
