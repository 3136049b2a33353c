"""Risk score calculation endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from compliance_monitor.schemas.scoring import RiskScoreRequest, RiskScoreResponse
from compliance_monitor.security import SecurityContext, ensure_org_access, require_permission
from compliance_monitor.services.risk_scoring import score_organization, strength_score

router = APIRouter(tags=["risk"])


@router.post("/organizations/{org_id}/risk-score", response_model=RiskScoreResponse)
def update_risk_score(
    request: Request,
    org_id: str,
    body: RiskScoreRequest,
    context: SecurityContext = Depends(require_permission("risk:score")),
) -> RiskScoreResponse:
    """Compute the composite risk score for one organization and year, and store it."""
    ensure_org_access(context, org_id)
    score = score_organization(
        request.app.state.store,
        org_id,
        body.year,
        body.factors,
        body.transparency_index,
    )
    request.app.state.audit.record(
        request,
        context,
        "risk_score_update",
        "risk_score",
        "success",
        org_id=org_id,
        details={"year": score.year, "score": score.score},
    )
    return RiskScoreResponse(
        data=score,
        strength=strength_score(body.factors),
        message=f"Risk score updated for {body.year}",
    )
