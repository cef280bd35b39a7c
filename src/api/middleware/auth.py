"""Optional API-key auth middleware and the requesting-user dependency.

When EPESI_API_KEY is set, every /api/* request must carry the key in the
X-API-Key header. The key is a shared secret, not a per-user credential:
user identity comes from the X-User-Id header set by the identity-provider
proxy in front of the app, and is only recorded as ``created_by_id``.
"""

from __future__ import annotations

import hmac
import logging
import os
import threading
import time

from fastapi import Header, Request
from fastapi.responses import JSONResponse, Response

from src.errors.formatter import EpesiError

logger = logging.getLogger(__name__)

ANONYMOUS_USER_ID = "anonymous"

_PUBLIC_PATH_PREFIXES = (
    "/health",
    "/readyz",
    "/docs",
    "/redoc",
    "/openapi.json",
)

# Auth failures per client IP within a sliding window
_AUTH_FAIL_MAX = 10
_AUTH_FAIL_WINDOW_SECONDS = 300
_auth_failures: dict[str, list[float]] = {}
_auth_lock = threading.Lock()

# X-Forwarded-For is only trusted behind a known reverse proxy
_TRUST_PROXY = os.environ.get("EPESI_TRUST_PROXY", "").strip().lower() in ("1", "true")

_MIN_API_KEY_LENGTH = 32


def _get_client_ip(request: Request) -> str:
    if _TRUST_PROXY:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _is_rate_limited(client_ip: str) -> bool:
    with _auth_lock:
        now = time.monotonic()
        timestamps = [
            t for t in _auth_failures.get(client_ip, [])
            if now - t < _AUTH_FAIL_WINDOW_SECONDS
        ]
        _auth_failures[client_ip] = timestamps
        return len(timestamps) >= _AUTH_FAIL_MAX


def _record_auth_failure(client_ip: str) -> None:
    with _auth_lock:
        _auth_failures.setdefault(client_ip, []).append(time.monotonic())


def reset_rate_limiter() -> None:
    """Reset the rate limiter state. Used by tests."""
    with _auth_lock:
        _auth_failures.clear()


def validate_api_key_strength() -> None:
    """Validate the configured API key at startup.

    Raises:
        ValueError: If EPESI_API_KEY is set but shorter than 32 characters.
    """
    key = get_expected_api_key()
    if key and len(key) < _MIN_API_KEY_LENGTH:
        raise ValueError(
            f"EPESI_API_KEY is too short ({len(key)} chars). "
            f"Minimum length is {_MIN_API_KEY_LENGTH} characters."
        )


def get_expected_api_key() -> str:
    """Return configured API key; empty string means auth disabled."""
    return os.environ.get("EPESI_API_KEY", "").strip()


def should_authenticate(path: str) -> bool:
    """Return True when this path should be protected by API-key auth."""
    if path.startswith(_PUBLIC_PATH_PREFIXES):
        return False
    return path.startswith("/api/")


async def maybe_require_api_key(request: Request, call_next) -> Response:
    """FastAPI middleware entrypoint for optional API-key auth."""
    if request.method.upper() == "OPTIONS":
        return await call_next(request)

    expected_key = get_expected_api_key()
    if not expected_key or not should_authenticate(request.url.path):
        return await call_next(request)

    client_ip = _get_client_ip(request)
    if _is_rate_limited(client_ip):
        logger.warning("Auth rate limit exceeded for IP %s", client_ip)
        return JSONResponse(
            status_code=429,
            content={"detail": "Too many authentication failures. Try again later."},
        )

    provided_key = request.headers.get("X-API-Key", "")
    if not provided_key or not hmac.compare_digest(provided_key, expected_key):
        _record_auth_failure(client_ip)
        error = EpesiError.from_code("E-5001")
        return JSONResponse(
            status_code=error.http_status,
            content={
                "error_code": error.code,
                "message": error.message,
                "remediation": error.remediation,
                "is_retryable": error.is_retryable,
            },
        )
    return await call_next(request)


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Dependency returning the opaque id of the requesting user."""
    user_id = (x_user_id or "").strip()
    return user_id[:255] if user_id else ANONYMOUS_USER_ID
