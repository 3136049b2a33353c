"""Schemas for the dashboard KPI endpoint."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class OrganizationMetrics(BaseModel):
    total: int


class GrantMetrics(BaseModel):
    total: int
    total_funding: float
    average_grant_size: int
    largest_grant: float


class RiskDistribution(BaseModel):
    low: int
    medium: int
    high: int


class RiskMetrics(BaseModel):
    average_score: float
    distribution: RiskDistribution


class TransparencyMetrics(BaseModel):
    average_index: float


class ReportMetrics(BaseModel):
    total: int
    completed: int


class DashboardMetrics(BaseModel):
    """Portfolio-wide KPIs for dashboards and auto-refreshing displays."""

    organizations: OrganizationMetrics
    grants: GrantMetrics
    risk: RiskMetrics
    transparency: TransparencyMetrics
    reports: ReportMetrics
    last_updated: datetime


class MetricsEnvelope(BaseModel):
    success: bool = True
    data: DashboardMetrics
    message: str = "Metrics fetched successfully"
