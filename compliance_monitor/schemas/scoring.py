"""Schemas for computing and storing an organization's risk score."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from compliance_monitor.schemas.financials import RiskScore


class RiskFactors(BaseModel):
    """Normalised inputs to the composite risk score, each in [0, 1].

    Higher ``diversity``, ``pledge_consistency`` and ``governance`` mean a
    healthier organization; higher ``daf_dependency`` and ``concentration``
    mean a riskier one.
    """

    model_config = ConfigDict(extra="forbid")

    diversity: float = Field(..., ge=0.0, le=1.0)
    daf_dependency: float = Field(..., ge=0.0, le=1.0)
    pledge_consistency: float = Field(..., ge=0.0, le=1.0)
    concentration: float = Field(..., ge=0.0, le=1.0)
    governance: float = Field(..., ge=0.0, le=1.0)


class RiskScoreRequest(BaseModel):
    """Request body for POST /api/organizations/{org_id}/risk-score."""

    model_config = ConfigDict(extra="forbid")

    year: int = Field(..., ge=2000)
    factors: RiskFactors
    transparency_index: float = Field(..., ge=0.0, le=100.0)


class RiskScoreResponse(BaseModel):
    success: bool = True
    data: RiskScore
    strength: float
    message: str
