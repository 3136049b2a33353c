"""Organization and financial/filing records read by the engine."""

from __future__ import annotations

import uuid
from datetime import date

from pydantic import BaseModel, Field


def new_id() -> str:
    return str(uuid.uuid4())


class Organization(BaseModel):
    """A monitored nonprofit organization."""

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=200)
    ein: str | None = Field(default=None, pattern=r"^\d{2}-\d{7}$")
    mission: str | None = Field(default=None, max_length=1000)
    website: str | None = None


class DafRecord(BaseModel):
    """Yearly donor-advised-fund ratio snapshot."""

    id: str = Field(default_factory=new_id)
    organization_id: str
    year: int
    daf_ratio: float
    total_contributions: float = 0.0


class DonorRecord(BaseModel):
    """A donor's contribution to an organization in one year."""

    id: str = Field(default_factory=new_id)
    organization_id: str
    name: str
    total_contribution: float
    contribution_year: int


class FilingRecord(BaseModel):
    """A 990 filing event."""

    id: str = Field(default_factory=new_id)
    organization_id: str
    filing_date: date
    tax_year: int
    status: str = "filed"


class Grant(BaseModel):
    """A grant from a donor to a recipient organization."""

    id: str = Field(default_factory=new_id)
    donor_id: str | None = None
    recipient_id: str
    amount: float = Field(..., ge=0)
    year: int
    confirmed: bool = False
    source_file: str | None = None


class RiskScore(BaseModel):
    """Compliance risk analysis for an organization in one year."""

    id: str = Field(default_factory=new_id)
    org_id: str
    year: int
    score: float = Field(..., ge=0.0, le=100.0)
    dependency_ratio: float = Field(..., ge=0.0, le=1.0)
    transparency_index: float = Field(..., ge=0.0, le=100.0)
