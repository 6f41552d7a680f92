"""
FastAPI Gemini Proxy Application Factory
========================================

This is the main entry point for the proxy service that sits between a
browser/mobile frontend and the Google Generative Language API, so the
API key never leaves the server.

Architecture:
    Frontend → Gemini Proxy (this service) → Generative Language API

Routers:
    - /api/gemini-proxy : Forward generateContent requests (POST only)
    - /health           : Health check endpoint

Environment Variables:
    - GEMINI_API_KEY: Google Generative Language API key (required)
    - GEMINI_API_BASE_URL: Upstream base URL (default: https://generativelanguage.googleapis.com/v1beta)
    - UPSTREAM_TIMEOUT_SECONDS: Upstream timeout (default: none)
    - ALLOWED_ORIGINS: Comma-separated CORS origins (default: no CORS)
    - LOG_LEVEL: Logging level (default: INFO)

Running the Service:
    Development:
        uvicorn gemini_proxy.main:app --reload --host 0.0.0.0 --port 8080

    Production:
        uvicorn gemini_proxy.main:app --host 0.0.0.0 --port 8080 --workers 4

    Serverless (Vercel):
        api/index.py exposes the same app instance.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from gemini_proxy import __version__
from gemini_proxy.config import Settings, get_settings, validate_configuration
from gemini_proxy.models import ErrorResponse, HealthResponse
from gemini_proxy.proxy import proxy_router

SERVICE_NAME = "gemini-proxy"


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

    # httpx logs every request URL at INFO, and the upstream URL carries the API key
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)


def load_startup_settings() -> Optional[Settings]:
    """
    Load settings for app construction and startup.

    Invalid environment values must not stop the module from importing;
    the proxy endpoint resolves settings again per request and reports the
    validation error to the caller as a JSON 500.

    Returns:
        Settings instance, or None if the environment is invalid.
    """
    try:
        return get_settings()
    except ValidationError as e:
        logging.getLogger("gemini_proxy.main").error(
            f"Invalid configuration, starting with defaults: {e}"
        )
        return None


# Application state singletons
class AppState:
    """
    Global application state container.

    Holds the shared upstream HTTP client. No request data is kept here.
    """
    def __init__(self):
        self.settings: Optional[Settings] = None
        self.upstream_client: Optional[httpx.AsyncClient] = None


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup tasks:
        - Load configuration from environment
        - Create the shared httpx client for upstream calls
        - Log configuration problems (missing API key, no timeout)

    Shutdown tasks:
        - Close the upstream client
    """
    app_state: AppState = app.state.app_state
    logger = logging.getLogger("gemini_proxy.main")

    settings = load_startup_settings()
    app_state.settings = settings

    if settings is not None:
        setup_logging(settings.LOG_LEVEL)

        logger.info(
            "Starting Gemini proxy",
            extra={
                "upstream_base_url": settings.GEMINI_API_BASE_URL,
                "log_level": settings.LOG_LEVEL,
            }
        )

        config_status = validate_configuration(settings)
        for error in config_status["errors"]:
            logger.error(f"Configuration error: {error}")
        for warning in config_status["warnings"]:
            logger.warning(f"Configuration warning: {warning}")

    if app_state.upstream_client is None:
        app_state.upstream_client = httpx.AsyncClient(
            timeout=settings.UPSTREAM_TIMEOUT_SECONDS if settings else None
        )
    logger.info("Initialized upstream HTTP client")

    yield

    # Shutdown
    logger.info("Shutting down Gemini proxy")

    if app_state.upstream_client is not None:
        await app_state.upstream_client.aclose()
        app_state.upstream_client = None
        logger.info("Closed upstream HTTP client")

    logger.info("Gemini proxy shutdown complete")


# Create FastAPI application
def create_app() -> FastAPI:
    """
    Application factory function.

    Creates and configures the FastAPI application instance with:
        - Lifespan management
        - CORS middleware (only when ALLOWED_ORIGINS is set)
        - Route handlers
        - Exception handlers

    Returns:
        FastAPI: Configured application instance
    """
    settings = load_startup_settings()

    # Serverless runtimes may never run the lifespan, so logging is set up here too
    setup_logging(settings.LOG_LEVEL if settings else "INFO")

    app = FastAPI(
        title="Gemini Proxy",
        description="Forwards generateContent requests to the Gemini API with a server-side key",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.state.app_state = AppState()

    if settings is not None and settings.allowed_origins_list:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins_list,
            allow_credentials=False,
            allow_methods=["POST", "OPTIONS"],
            allow_headers=["*"],
        )

    # Proxy router: Forwards generateContent requests upstream
    app.include_router(proxy_router, tags=["Gemini Proxy"])

    # Health check endpoint
    @app.get("/health", tags=["System"], response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """
        Health check endpoint.

        Reports whether the API key is present without exposing it.
        """
        return HealthResponse(
            status="ok",
            service=SERVICE_NAME,
            version=__version__,
            api_key_configured=get_settings().api_key_configured,
        )

    # Root endpoint
    @app.get("/", tags=["System"])
    async def root() -> Dict[str, Any]:
        """
        Root endpoint with service information.

        Returns:
            dict: Service metadata and available endpoints
        """
        return {
            "service": SERVICE_NAME,
            "version": __version__,
            "description": "Gemini API proxy",
            "endpoints": {
                "health": "/health",
                "docs": "/docs",
                "proxy": "/api/gemini-proxy"
            }
        }

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler for unhandled errors.

        Uses the same body shape as the proxy's own internal-error branch.
        """
        logger = logging.getLogger("gemini_proxy.main")
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__
            },
            exc_info=True
        )

        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                message="Internal Server Error",
                error=str(exc) or type(exc).__name__,
            ).to_content()
        )

    return app


# Create app instance for uvicorn
app = create_app()


if __name__ == "__main__":
    """
    Direct execution entry point.

    This allows running the service directly with: python -m gemini_proxy.main
    """
    settings = get_settings()

    uvicorn.run(
        "gemini_proxy.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower()
    )
