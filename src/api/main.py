"""FastAPI application for the Epesi dashboards API.

Provides the main application instance with routers, middleware,
and exception handlers configured.
"""

import logging
import os
import sys
import time as _time
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _pkg_version
from typing import Any

from fastapi import FastAPI, Request

# Configure logging to stdout for uvicorn to capture
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
# Ensure our application loggers are captured
logging.getLogger("src").setLevel(logging.INFO)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from src.api.middleware.auth import maybe_require_api_key, validate_api_key_strength
from src.api.routes import (
    ai,
    blocks,
    conversations,
    dashboards,
    data_sources,
    epesi_agent,
    organizations,
    projects,
    stats,
)
from src.db.connection import init_db
from src.errors import DomainError, EpesiError
from src.services.gateway_provider import shutdown_gateway

logger = logging.getLogger(__name__)

API_VERSION = "0.1.0"

# Module-level state for the health endpoint
_startup_time: float = 0.0


def _parse_allowed_origins() -> list[str]:
    """Parse comma-separated CORS allowlist from ALLOWED_ORIGINS env var."""
    raw = os.environ.get("ALLOWED_ORIGINS", "").strip()
    if not raw:
        return []
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def _package_version() -> str:
    try:
        return _pkg_version("epesi")
    except PackageNotFoundError:
        return API_VERSION


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Async lifespan: schema creation on startup, client cleanup on shutdown."""
    global _startup_time

    _startup_time = _time.time()
    validate_api_key_strength()
    init_db()
    if not os.environ.get("ANTHROPIC_API_KEY"):
        logger.warning(
            "ANTHROPIC_API_KEY is not set; AI generation endpoints will return 502."
        )

    yield

    await shutdown_gateway()


app = FastAPI(
    title="Epesi API",
    description="AI-assisted analytics dashboards: charts, smart insights and the Epesi Agent",
    version=API_VERSION,
    lifespan=lifespan,
)

# Optional API auth for /api/* when EPESI_API_KEY is configured.
app.middleware("http")(maybe_require_api_key)

# CORS allowlist is env-driven. If unset, CORS is disabled (same-origin only).
allowed_origins = _parse_allowed_origins()
if allowed_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-API-Key", "X-User-Id"],
    )


def _error_response(error: EpesiError) -> JSONResponse:
    return JSONResponse(
        status_code=error.http_status,
        content={
            "error_code": error.code,
            "message": error.message,
            "remediation": error.remediation,
            "is_retryable": error.is_retryable,
            "details": error.details if error.details else None,
        },
    )


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Translate domain exceptions into the registry's user-facing error.

    Args:
        request: The incoming request.
        exc: The domain exception raised by a service.

    Returns:
        JSONResponse with the error code, message and status for its kind.
    """
    error = EpesiError.from_domain_error(exc)
    if error.http_status >= 500:
        logger.warning(
            "%s %s failed with %s: %s", request.method, request.url.path, error.code, exc
        )
    else:
        logger.info("%s %s -> %s: %s", request.method, request.url.path, error.code, exc)
    return _error_response(error)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Report database failures without leaking driver messages."""
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return _error_response(EpesiError.from_code("E-4001"))


# Include routers
app.include_router(organizations.router, prefix="/api/v1")
app.include_router(projects.router, prefix="/api/v1")
app.include_router(stats.router, prefix="/api/v1")
app.include_router(dashboards.router, prefix="/api/v1")
app.include_router(blocks.router, prefix="/api/v1")
app.include_router(data_sources.router, prefix="/api/v1")
app.include_router(conversations.router, prefix="/api/v1")
app.include_router(ai.router, prefix="/api/v1")
app.include_router(epesi_agent.router, prefix="/api/v1")


@app.get("/health")
def health_check() -> dict:
    """Health check endpoint.

    Returns:
        Dictionary with status, version and uptime.
    """
    uptime = int(_time.time() - _startup_time) if _startup_time else 0
    return {
        "status": "healthy",
        "version": _package_version(),
        "uptime_seconds": uptime,
    }


@app.get("/readyz")
def readiness_check():
    """Dependency-aware readiness check for local/container deployments."""
    from sqlalchemy import text

    from src.db.connection import get_db_context

    uptime = int(_time.time() - _startup_time) if _startup_time else 0
    checks: dict[str, dict[str, Any]] = {}

    try:
        with get_db_context() as db:
            db.execute(text("SELECT 1"))
        checks["database"] = {"status": "ok"}
    except SQLAlchemyError as exc:
        return JSONResponse(
            status_code=503,
            content={
                "status": "not_ready",
                "uptime_seconds": uptime,
                "checks": {"database": {"status": "error", "message": str(exc)}},
            },
        )

    if os.environ.get("ANTHROPIC_API_KEY"):
        checks["generation_backend"] = {"status": "configured"}
        status = "ready"
    else:
        checks["generation_backend"] = {"status": "degraded", "missing": ["ANTHROPIC_API_KEY"]}
        status = "degraded"

    return {
        "status": status,
        "uptime_seconds": uptime,
        "checks": checks,
    }


@app.get("/api")
def api_root() -> dict:
    """API root with links to docs."""
    return {
        "name": "Epesi API",
        "version": API_VERSION,
        "docs": "/docs",
        "redoc": "/redoc",
    }
