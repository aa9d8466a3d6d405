"""
FastAPI Prediction Proxy Application Factory
============================================

This is the main entry point for the proxy that sits between chat clients
and the upstream prediction service.

Architecture:
    Chat Clients → Prediction Proxy (this service) → Prediction API

Routes:
    - /health       : Health check endpoint
    - /{path}       : OPTIONS preflight, POST prediction relay, 405 otherwise

Environment Variables Required:
    - UPSTREAM_URL: Prediction service base URL (e.g., "https://flowise.example.com")
    - UPSTREAM_KEY: Bearer credential for the prediction service

Optional:
    - UPSTREAM_CONNECT_TIMEOUT: Connect timeout in seconds (default: 10)
    - UPSTREAM_READ_TIMEOUT: Seconds between streamed chunks (default: 300)
    - PROXY_HOST / PROXY_PORT: Bind address (default: 0.0.0.0:8080)
    - LOG_LEVEL: Logging level (default: INFO)

Running the Service:
    Development:
        uvicorn prediction_proxy.app.main:app --reload --host 0.0.0.0 --port 8080

    Production:
        uvicorn prediction_proxy.app.main:app --host 0.0.0.0 --port 8080 --workers 4

    Console script:
        prediction-proxy
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Dict, Optional

from fastapi import FastAPI
import httpx
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from . import __version__
from .config import Settings, get_settings
from .cors import CORSHeadersMiddleware
from .errors import ProxyError, method_not_allowed_handler, proxy_error_handler
from .proxy import proxy_router


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


def build_upstream_client(settings: Settings) -> httpx.AsyncClient:
    """
    Create the pooled HTTP client shared by all proxied requests.

    The read timeout bounds the gap between streamed chunks, not the
    total duration of a prediction.
    """
    timeout = httpx.Timeout(
        settings.UPSTREAM_READ_TIMEOUT,
        connect=settings.UPSTREAM_CONNECT_TIMEOUT,
    )
    return httpx.AsyncClient(timeout=timeout)


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup tasks:
        - Ensure an open upstream client exists
        - Log service startup information

    Shutdown tasks:
        - Close the upstream client and its pooled connections
    """
    settings: Settings = app.state.settings
    logger = logging.getLogger("prediction_proxy.main")

    if app.state.upstream_client.is_closed:
        app.state.upstream_client = build_upstream_client(settings)

    logger.info(
        "Prediction proxy started",
        extra={
            "upstream_url": settings.upstream_url_str,
            "version": __version__,
        }
    )

    yield

    # Shutdown
    await app.state.upstream_client.aclose()
    logger.info("Prediction proxy shutdown complete")


# Create FastAPI application
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory function.

    Creates and configures the FastAPI application instance with:
        - Immutable settings and upstream client on app.state
        - CORS header middleware
        - ProxyError and plain-text 405 exception handlers
        - Health and proxy routes

    Args:
        settings: Settings to inject; loaded from the environment when omitted

    Returns:
        FastAPI: Configured application instance

    Raises:
        ValidationError: If required settings are missing (fail fast)
    """
    if settings is None:
        settings = get_settings()

    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title="Prediction Proxy",
        description="Streaming proxy in front of the upstream prediction API",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.upstream_client = build_upstream_client(settings)

    app.add_middleware(CORSHeadersMiddleware)
    app.add_exception_handler(ProxyError, proxy_error_handler)
    app.add_exception_handler(StarletteHTTPException, method_not_allowed_handler)

    # Health check endpoint (registered before the catch-all proxy routes)
    @app.get("/health", tags=["System"])
    async def health_check() -> Dict[str, str]:
        """
        Health check endpoint.

        Returns:
            dict: Service health information
        """
        return {
            "status": "ok",
            "service": "prediction-proxy",
            "version": __version__
        }

    # Proxy router: catch-all prediction relay
    app.include_router(proxy_router, tags=["Prediction Proxy"])

    return app


# Create app instance for uvicorn
app = create_app()


def run() -> None:
    """Console script entry point."""
    settings = get_settings()

    uvicorn.run(
        "prediction_proxy.app.main:app",
        host=settings.PROXY_HOST,
        port=settings.PROXY_PORT,
        log_level=settings.LOG_LEVEL.lower()
    )


if __name__ == "__main__":
    run()
