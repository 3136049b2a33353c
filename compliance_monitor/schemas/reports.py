"""Schemas for report generation endpoints and the report value object."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from compliance_monitor.schemas.financials import Grant, RiskScore

ReportType = Literal["compliance_analysis", "risk_assessment", "donor_analysis"]
ReportFormat = Literal["json", "pdf", "html"]
ReportSection = Literal["summary", "grants", "risk_analysis", "recommendations", "compliance_status"]
RiskLevel = Literal["low", "medium", "high"]

REPORT_TYPES = ("compliance_analysis", "risk_assessment", "donor_analysis")
ORG_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")
MIN_REPORT_YEAR = 2000


class ReportOptions(BaseModel):
    """Options controlling report content and output."""

    model_config = ConfigDict(extra="forbid")

    include_recommendations: bool = True
    include_visualizations: bool = True
    format: ReportFormat = "json"
    sections: list[ReportSection] | None = None


class ReportGenerationRequest(BaseModel):
    """Request body for POST /api/report/generate."""

    model_config = ConfigDict(extra="forbid")

    org_id: str = Field(..., min_length=1, max_length=100)
    report_type: ReportType
    year: int | None = None
    options: ReportOptions | None = None

    @field_validator("org_id")
    @classmethod
    def _check_org_id(cls, value: str) -> str:
        if not ORG_ID_PATTERN.match(value):
            raise ValueError(
                "Organization ID must contain only alphanumeric characters, hyphens, and underscores"
            )
        return value

    @field_validator("year")
    @classmethod
    def _check_year(cls, value: int | None) -> int | None:
        if value is None:
            return value
        if value < MIN_REPORT_YEAR:
            raise ValueError("Year must be 2000 or later")
        return value


class ReportOrganization(BaseModel):
    name: str
    ein: str | None = None
    mission: str | None = None


class ReportSummary(BaseModel):
    """Derived statistics shown at the top of every report."""

    total_grants: int
    total_funding: float
    avg_grant_size: float
    risk_level: RiskLevel
    risk_score: float | None
    dependency_ratio: float | None
    transparency_index: float | None


class ReportData(BaseModel):
    """Raw inputs attached for the renderer."""

    grants: list[Grant]
    risk_score: RiskScore | None


class Report(BaseModel):
    """A compliance report, computed on demand and never stored by the engine."""

    id: str
    org_id: str
    organization: ReportOrganization
    report_type: ReportType
    year: int
    generated_at: datetime
    status: str = "completed"
    format: ReportFormat = "json"
    summary: ReportSummary
    key_findings: list[str]
    recommendations: list[str] | None
    data: ReportData


class PdfReport(Report):
    """A report whose PDF rendering was uploaded and signed."""

    pdf_url: str
    file_path: str


class ReportEnvelope(BaseModel):
    """Response wrapper for report endpoints."""

    success: bool = True
    data: PdfReport | Report
    message: str
