"""Health check endpoints for production monitoring."""

from __future__ import annotations

import time

from fastapi import APIRouter, Request

from compliance_monitor.schemas.health import DependencyHealth, HealthResponse

router = APIRouter(tags=["health"])


def _check_dependency(name: str, check_fn) -> DependencyHealth:
    """Run a synchronous check and time it."""
    start = time.monotonic()
    try:
        check_fn()
    except Exception as exc:
        return DependencyHealth(
            name=name,
            status="unhealthy",
            latency_ms=round((time.monotonic() - start) * 1000, 2),
            details=str(exc)[:200],
        )
    return DependencyHealth(
        name=name,
        status="healthy",
        latency_ms=round((time.monotonic() - start) * 1000, 2),
    )


def _respond(request: Request, dependencies: list[DependencyHealth], degraded: str) -> HealthResponse:
    settings = request.app.state.settings
    overall = "healthy" if all(d.status == "healthy" for d in dependencies) else degraded
    return HealthResponse(
        status=overall,
        version=settings.app_version,
        environment=settings.environment,
        store_backend=settings.store_backend,
        dependencies=dependencies,
    )


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Basic health check: is the application running?"""
    return _respond(request, [_check_dependency("app", lambda: None)], degraded="degraded")


@router.get("/health/ready", response_model=HealthResponse)
def readiness_check(request: Request) -> HealthResponse:
    """Readiness check: can the data store answer queries?"""
    dependencies = [
        _check_dependency("app", lambda: None),
        _check_dependency("store", request.app.state.store.ping),
    ]
    return _respond(request, dependencies, degraded="unhealthy")


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """Liveness check: is the process alive?"""
    return {"status": "alive"}
