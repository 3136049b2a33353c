"""Dashboard KPI endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from compliance_monitor.schemas.metrics import MetricsEnvelope
from compliance_monitor.security import SecurityContext, require_permission
from compliance_monitor.services.metrics import compute_dashboard_metrics

router = APIRouter(tags=["metrics"])


@router.get("/metrics", response_model=MetricsEnvelope)
def dashboard_metrics(
    request: Request,
    context: SecurityContext = Depends(require_permission("metrics:read")),
) -> MetricsEnvelope:
    """Portfolio-wide totals, averages, and risk distribution."""
    metrics = compute_dashboard_metrics(request.app.state.store, request.app.state.clock)
    return MetricsEnvelope(data=metrics)
