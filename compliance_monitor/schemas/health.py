"""Schemas for health check endpoints."""

from __future__ import annotations

from pydantic import BaseModel


class DependencyHealth(BaseModel):
    """Health of the application or one of its collaborators."""

    name: str
    status: str
    latency_ms: float | None = None
    details: str | None = None


class HealthResponse(BaseModel):
    """Overall service health, including which store backend is wired in."""

    status: str
    version: str
    environment: str
    store_backend: str
    dependencies: list[DependencyHealth]
