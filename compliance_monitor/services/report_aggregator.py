"""Report aggregator: summarises grants and risk data into a report value object."""

from __future__ import annotations

import uuid

import structlog

from compliance_monitor.clock import Clock, SystemClock
from compliance_monitor.errors import OrganizationNotFound, ReportValidationError
from compliance_monitor.schemas.financials import Grant, RiskScore
from compliance_monitor.schemas.reports import (
    Report,
    ReportData,
    ReportOptions,
    ReportOrganization,
    ReportSummary,
)
from compliance_monitor.services.numbers import format_currency, format_number, safe_mean
from compliance_monitor.store import ComplianceStore

logger = structlog.get_logger()


RISK_HIGH_ABOVE = 70.0
RISK_MEDIUM_ABOVE = 40.0

DEPENDENCY_RATIO_LIMIT = 0.7
TRANSPARENCY_INDEX_FLOOR = 60.0
MIN_GRANT_COUNT = 3

RECOMMEND_DIVERSIFY = "Diversify funding sources to reduce donor dependency risk"
RECOMMEND_TRANSPARENCY = "Improve transparency by publishing detailed financial reports"
RECOMMEND_DONOR_BASE = "Expand donor base to ensure financial stability"


def classify_risk_level(risk_score: RiskScore | None) -> str:
    """high above 70, medium above 40, otherwise (or with no score) low."""
    if risk_score is None:
        return "low"
    if risk_score.score > RISK_HIGH_ABOVE:
        return "high"
    if risk_score.score > RISK_MEDIUM_ABOVE:
        return "medium"
    return "low"


def derive_recommendations(grants: list[Grant], risk_score: RiskScore | None) -> list[str]:
    """Apply the three independent recommendation rules."""
    recommendations = []
    if risk_score is not None and risk_score.dependency_ratio > DEPENDENCY_RATIO_LIMIT:
        recommendations.append(RECOMMEND_DIVERSIFY)
    if risk_score is not None and risk_score.transparency_index < TRANSPARENCY_INDEX_FLOOR:
        recommendations.append(RECOMMEND_TRANSPARENCY)
    if len(grants) < MIN_GRANT_COUNT:
        recommendations.append(RECOMMEND_DONOR_BASE)
    return recommendations


def summarise(grants: list[Grant], risk_score: RiskScore | None) -> ReportSummary:
    total_funding = sum(g.amount for g in grants)
    return ReportSummary(
        total_grants=len(grants),
        total_funding=total_funding,
        avg_grant_size=safe_mean(total_funding, len(grants)),
        risk_level=classify_risk_level(risk_score),
        risk_score=risk_score.score if risk_score else None,
        dependency_ratio=risk_score.dependency_ratio if risk_score else None,
        transparency_index=risk_score.transparency_index if risk_score else None,
    )


def build_key_findings(summary: ReportSummary) -> list[str]:
    dependency = (summary.dependency_ratio or 0.0) * 100
    transparency = (
        format_number(summary.transparency_index) if summary.transparency_index is not None else "N/A"
    )
    return [
        f"Organization received {summary.total_grants} grant(s) totaling "
        f"{format_currency(summary.total_funding)}",
        f"Overall compliance risk level: {summary.risk_level}",
        f"Donor dependency ratio: {dependency:.1f}%",
        f"Transparency index: {transparency}",
    ]


def build_report(
    store: ComplianceStore,
    org_id: str,
    report_type: str,
    year: int | None = None,
    options: ReportOptions | None = None,
    clock: Clock | None = None,
) -> Report:
    """Assemble a report for an organization.

    Grants are summarised across all years regardless of ``year``, and the
    most recent risk score on record is used.

    Raises:
        ReportValidationError: if ``year`` lies beyond next calendar year.
        OrganizationNotFound: if ``org_id`` does not resolve.
    """
    options = options or ReportOptions()
    clock = clock or SystemClock()
    now = clock.now()
    if year is not None and year > now.year + 1:
        raise ReportValidationError("year", "Year cannot be in the future")

    organization = store.get_organization(org_id)
    if organization is None:
        raise OrganizationNotFound(org_id)

    grants = store.get_grants_for_recipient(org_id)
    risk_score = store.get_risk_score(org_id)

    summary = summarise(grants, risk_score)
    recommendations = (
        derive_recommendations(grants, risk_score) if options.include_recommendations else None
    )

    report = Report(
        id=f"report-{uuid.uuid4().hex}",
        org_id=org_id,
        organization=ReportOrganization(
            name=organization.name,
            ein=organization.ein,
            mission=organization.mission,
        ),
        report_type=report_type,
        year=year or now.year,
        generated_at=now,
        status="completed",
        format=options.format,
        summary=summary,
        key_findings=build_key_findings(summary),
        recommendations=recommendations,
        data=ReportData(grants=grants, risk_score=risk_score),
    )

    logger.info(
        "report_built",
        report_id=report.id,
        org_id=org_id,
        report_type=report_type,
        total_grants=summary.total_grants,
        risk_level=summary.risk_level,
    )
    return report
