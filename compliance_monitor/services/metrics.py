"""Dashboard KPIs aggregated across every monitored organization."""

from __future__ import annotations

import structlog

from compliance_monitor.clock import Clock, SystemClock
from compliance_monitor.schemas.financials import RiskScore
from compliance_monitor.schemas.metrics import (
    DashboardMetrics,
    GrantMetrics,
    OrganizationMetrics,
    ReportMetrics,
    RiskDistribution,
    RiskMetrics,
    TransparencyMetrics,
)
from compliance_monitor.services.numbers import round_half_up, safe_mean
from compliance_monitor.store import ComplianceStore

logger = structlog.get_logger()

# Dashboard bands are inclusive at the lower edge, unlike report risk levels
BAND_HIGH_FROM = 70.0
BAND_MEDIUM_FROM = 40.0


def risk_band(score: float) -> str:
    """low below 40, medium from 40 up to 70, high from 70."""
    if score >= BAND_HIGH_FROM:
        return "high"
    if score >= BAND_MEDIUM_FROM:
        return "medium"
    return "low"


def latest_scores(scores: list[RiskScore]) -> list[RiskScore]:
    """The most recent score per organization."""
    latest: dict[str, RiskScore] = {}
    for score in scores:
        current = latest.get(score.org_id)
        if current is None or score.year > current.year:
            latest[score.org_id] = score
    return list(latest.values())


def compute_dashboard_metrics(store: ComplianceStore, clock: Clock | None = None) -> DashboardMetrics:
    clock = clock or SystemClock()

    organizations = store.list_organizations()
    grants = store.list_grants()
    scores = latest_scores(store.list_risk_scores())

    amounts = [grant.amount for grant in grants]
    total_funding = sum(amounts)

    distribution = {"low": 0, "medium": 0, "high": 0}
    for score in scores:
        distribution[risk_band(score.score)] += 1

    metrics = DashboardMetrics(
        organizations=OrganizationMetrics(total=len(organizations)),
        grants=GrantMetrics(
            total=len(grants),
            total_funding=total_funding,
            average_grant_size=int(round_half_up(safe_mean(total_funding, len(grants)))),
            largest_grant=max(amounts, default=0.0),
        ),
        risk=RiskMetrics(
            average_score=round_half_up(safe_mean(sum(s.score for s in scores), len(scores)), 1),
            distribution=RiskDistribution(**distribution),
        ),
        transparency=TransparencyMetrics(
            average_index=round_half_up(
                safe_mean(sum(s.transparency_index for s in scores), len(scores)), 1
            ),
        ),
        reports=ReportMetrics(
            total=store.count_audit_entries("report_generate"),
            completed=store.count_audit_entries("report_generate", result="success"),
        ),
        last_updated=clock.now(),
    )
    logger.info(
        "dashboard_metrics_computed",
        organizations=metrics.organizations.total,
        grants=metrics.grants.total,
        scored_organizations=len(scores),
    )
    return metrics
