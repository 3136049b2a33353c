"""Composite risk scoring from normalised organization factors."""

from __future__ import annotations

import structlog

from compliance_monitor.errors import OrganizationNotFound
from compliance_monitor.schemas.financials import RiskScore
from compliance_monitor.schemas.scoring import RiskFactors
from compliance_monitor.store import ComplianceStore

logger = structlog.get_logger()

# Weights sum to 1.0
FACTOR_WEIGHTS = {
    "diversity": 0.25,
    "daf_dependency": 0.25,
    "pledge_consistency": 0.15,
    "concentration": 0.15,
    "governance": 0.20,
}


def strength_score(factors: RiskFactors) -> float:
    """Weighted composite on a 0-100 scale where 100 is the healthiest profile.

    >>> strength_score(RiskFactors(diversity=1, daf_dependency=0, pledge_consistency=1,
    ...                            concentration=0, governance=1))
    100.0
    """
    composite = (
        factors.diversity * FACTOR_WEIGHTS["diversity"]
        + (1 - factors.daf_dependency) * FACTOR_WEIGHTS["daf_dependency"]
        + factors.pledge_consistency * FACTOR_WEIGHTS["pledge_consistency"]
        + (1 - factors.concentration) * FACTOR_WEIGHTS["concentration"]
        + factors.governance * FACTOR_WEIGHTS["governance"]
    )
    return round(composite * 100, 2)


def calculate_risk_score(factors: RiskFactors) -> float:
    """Risk on the report scale: 0 is the healthiest profile, 100 the riskiest."""
    return round(100 - strength_score(factors), 2)


def score_organization(
    store: ComplianceStore,
    org_id: str,
    year: int,
    factors: RiskFactors,
    transparency_index: float,
) -> RiskScore:
    """Compute and store the organization's risk score for ``year``.

    Replaces any score already stored for that year.

    Raises:
        OrganizationNotFound: if ``org_id`` does not resolve.
    """
    if store.get_organization(org_id) is None:
        raise OrganizationNotFound(org_id)

    score = RiskScore(
        org_id=org_id,
        year=year,
        score=calculate_risk_score(factors),
        dependency_ratio=factors.daf_dependency,
        transparency_index=transparency_index,
    )
    stored = store.upsert_risk_score(score)
    logger.info("risk_score_updated", org_id=org_id, year=year, score=stored.score)
    return stored
