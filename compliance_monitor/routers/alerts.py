"""Alert feed, read-state, and evaluation endpoints.

Handlers are plain functions: FastAPI runs them in its threadpool, so store
queries and rule evaluation never block the event loop.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from compliance_monitor.errors import AlertNotFound, PermissionDenied
from compliance_monitor.schemas.alerts import (
    AlertListResponse,
    AlertUpdateRequest,
    AlertUpdateResponse,
    BatchEvaluationResponse,
    EvaluationResponse,
)
from compliance_monitor.security import SecurityContext, ensure_org_access, require_permission

router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.get("", response_model=AlertListResponse)
def list_alerts(
    request: Request,
    organization_id: str | None = Query(default=None, max_length=100),
    unread_only: bool = False,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    context: SecurityContext = Depends(require_permission("alert:read")),
) -> AlertListResponse:
    """List alerts newest first. Clients only ever see their own organization."""
    if context.role == "client":
        if organization_id is not None and organization_id != context.org_id:
            raise PermissionDenied("Access to this organization is not permitted")
        organization_id = context.org_id

    alerts, total = request.app.state.store.list_alerts(
        organization_id=organization_id,
        unread_only=unread_only,
        limit=limit,
        offset=offset,
    )
    request.app.state.audit.record(
        request,
        context,
        "alert_list",
        "alert",
        "success",
        org_id=organization_id,
        details={"returned": len(alerts), "total": total, "unread_only": unread_only},
    )
    return AlertListResponse(alerts=alerts, total=total, limit=limit, offset=offset)


@router.patch("", response_model=AlertUpdateResponse)
def update_alert(
    request: Request,
    body: AlertUpdateRequest,
    context: SecurityContext = Depends(require_permission("alert:update")),
) -> AlertUpdateResponse:
    """Mark an alert as read or unread."""
    store = request.app.state.store
    existing = store.get_alert(body.alert_id)
    if existing is None:
        raise AlertNotFound(body.alert_id)
    ensure_org_access(context, existing.organization_id)

    alert = store.set_alert_read(body.alert_id, body.is_read)
    if alert is None:
        raise AlertNotFound(body.alert_id)

    request.app.state.audit.record(
        request,
        context,
        "alert_update",
        "alert",
        "success",
        org_id=alert.organization_id,
        details={"alert_id": alert.id, "is_read": alert.is_read},
    )
    return AlertUpdateResponse(alert=alert)


@router.post("/evaluate/{org_id}", response_model=EvaluationResponse)
def evaluate_organization(
    request: Request,
    org_id: str,
    context: SecurityContext = Depends(require_permission("alert:evaluate")),
) -> EvaluationResponse:
    """Run every alert rule for one organization."""
    ensure_org_access(context, org_id)
    created = request.app.state.alert_engine.evaluate_known_organization(org_id)
    request.app.state.audit.record(
        request,
        context,
        "alert_evaluation",
        "alert",
        "success",
        org_id=org_id,
        details={"alerts_created": len(created), "alert_types": [a.alert_type for a in created]},
    )
    return EvaluationResponse(organization_id=org_id, alerts_created=len(created), alerts=created)


@router.post("/evaluate", response_model=BatchEvaluationResponse)
def evaluate_all_organizations(
    request: Request,
    context: SecurityContext = Depends(require_permission("alert:evaluate")),
) -> BatchEvaluationResponse:
    """Run every alert rule for every organization."""
    results = request.app.state.alert_engine.evaluate_all()
    request.app.state.audit.record(
        request,
        context,
        "alert_batch_evaluation",
        "alert",
        "success",
        details={"organizations": len(results), "alerts_created": sum(results.values())},
    )
    return BatchEvaluationResponse(
        organizations_evaluated=len(results),
        alerts_created=sum(results.values()),
        results=results,
    )
