"""Application middleware: rate limiting, CORS, logging, security headers, error mapping."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import Any

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from compliance_monitor.config import Settings
from compliance_monitor.errors import (
    AlertNotFound,
    AuthenticationRequired,
    ComplianceError,
    OrganizationNotFound,
    PermissionDenied,
    ReportDeliveryError,
    ReportNotFound,
    ReportRateLimited,
    ReportValidationError,
    UpstreamError,
)

logger = structlog.get_logger()

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-XSS-Protection": "1; mode=block",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
}
CONTENT_SECURITY_POLICY = "default-src 'self'; script-src 'self' 'unsafe-inline'; style-src 'self' 'unsafe-inline';"
# Interactive docs pull their assets from a CDN
CSP_EXEMPT_PATHS = ("/docs", "/redoc")


def get_limiter(settings: Settings) -> Limiter:
    """Create a rate limiter instance."""
    return Limiter(
        key_func=get_remote_address,
        default_limits=[settings.rate_limit_default],
    )


def configure_cors(app: FastAPI, settings: Settings) -> None:
    """Add CORS middleware to the application."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-RateLimit-Remaining", "Retry-After"],
    )


def default_rate_limit_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """The per-IP limit in the standard error shape.

    A plain function: ``SlowAPIMiddleware`` only calls synchronous handlers.
    """
    logger.warning("default_rate_limit_exceeded", path=request.url.path, limit=str(exc.detail))
    response = _error_response(429, "Rate limit exceeded", f"Rate limit exceeded: {exc.detail}")
    return request.app.state.limiter._inject_headers(response, request.state.view_rate_limit)


def configure_rate_limiting(app: FastAPI, settings: Settings) -> None:
    """Apply the default per-IP limit to every route."""
    limiter = get_limiter(settings)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, default_rate_limit_handler)
    app.add_middleware(SlowAPIMiddleware)


async def logging_middleware(request: Request, call_next) -> Response:
    """Structured logging middleware: logs every request."""
    start_time = time.monotonic()
    response = await call_next(request)
    duration_ms = round((time.monotonic() - start_time) * 1000, 2)

    logger.info(
        "http_request",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=duration_ms,
        client_ip=request.client.host if request.client else "unknown",
    )

    return response


def configure_request_logging(app: FastAPI) -> None:
    app.middleware("http")(logging_middleware)


async def security_headers_middleware(request: Request, call_next) -> Response:
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    if not request.url.path.startswith(CSP_EXEMPT_PATHS):
        response.headers.setdefault("Content-Security-Policy", CONTENT_SECURITY_POLICY)
    return response


def configure_security_headers(app: FastAPI) -> None:
    app.middleware("http")(security_headers_middleware)


def _error_response(
    status_code: int,
    error: str,
    message: str,
    headers: dict[str, str] | None = None,
    **extra: Any,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, "message": message, **extra},
        headers=headers,
    )


ERROR_STATUS: list[tuple[type[ComplianceError], int]] = [
    (AuthenticationRequired, 401),
    (PermissionDenied, 403),
    (ReportRateLimited, 429),
    (OrganizationNotFound, 404),
    (AlertNotFound, 404),
    (ReportNotFound, 404),
    (ReportValidationError, 400),
    (ReportDeliveryError, 500),
    (UpstreamError, 502),
]


def status_for(exc: ComplianceError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 500


async def compliance_error_handler(request: Request, exc: ComplianceError) -> JSONResponse:
    status_code = status_for(exc)
    log = logger.warning if status_code < 500 else logger.error
    log("request_failed", path=request.url.path, error=exc.title, message=exc.message, status_code=status_code)
    extra = {"details": exc.details} if exc.details else {}
    return _error_response(status_code, exc.title, exc.message, headers=exc.headers, **extra)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Framework errors (unknown route, wrong method) in the service's error shape."""
    try:
        error = HTTPStatus(exc.status_code).phrase
    except ValueError:
        error = "Error"
    return _error_response(exc.status_code, error, str(exc.detail), headers=getattr(exc, "headers", None))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Reject malformed input with 400 and messages grouped by field."""
    details: dict[str, list[str]] = {}
    for issue in exc.errors():
        location = [str(part) for part in issue.get("loc", ()) if part != "body"]
        details.setdefault(".".join(location) or "body", []).append(issue.get("msg", "Invalid value"))
    return _error_response(400, "Validation failed", "Request validation failed", details=details)


def configure_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ComplianceError, compliance_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)


def configure_structured_logging(settings: Settings) -> None:
    """Configure structlog for JSON or console output at ``settings.log_level``."""
    logging.basicConfig(format="%(message)s", level=settings.log_level.upper())
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown logging."""
    settings = app.state.settings
    configure_structured_logging(settings)

    logger.info(
        "application_starting",
        version=settings.app_version,
        environment=settings.environment,
        store_backend=settings.store_backend,
    )

    yield

    logger.info("application_shutting_down")
