"""Financial and filing facts: DAF ratios, donors, 990 filings, grants, risk scores."""

from __future__ import annotations

from datetime import date

from sqlalchemy import Boolean, Date, Float, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from compliance_monitor.models.base import Base


class DafRecord(Base):
    """Yearly donor-advised-fund ratio snapshot for an organization."""

    __tablename__ = "daf_records"

    organization_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    daf_ratio: Mapped[float] = mapped_column(Float, nullable=False)
    total_contributions: Mapped[float] = mapped_column(Float, default=0.0)

    def __repr__(self) -> str:
        return f"<DafRecord org={self.organization_id[:8]} year={self.year}>"


class Donor(Base):
    """A donor's contribution to an organization in one year."""

    __tablename__ = "donors"

    organization_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    total_contribution: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    contribution_year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<Donor {self.name} year={self.contribution_year}>"


class Filing990(Base):
    """A 990 filing event."""

    __tablename__ = "filings_990"

    organization_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    filing_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    tax_year: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="filed")

    def __repr__(self) -> str:
        return f"<Filing990 org={self.organization_id[:8]} tax_year={self.tax_year}>"


class Grant(Base):
    """A grant transaction from a donor to a recipient organization."""

    __tablename__ = "grants"

    donor_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    recipient_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount: Mapped[float] = mapped_column(Numeric(15, 2, asdecimal=False), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    confirmed: Mapped[bool] = mapped_column(Boolean, default=False)
    source_file: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Grant {self.amount} -> {self.recipient_id[:8]}>"


class RiskScore(Base):
    """Risk analysis for an organization; one row per (org, year)."""

    __tablename__ = "risk_scores"
    __table_args__ = (UniqueConstraint("org_id", "year", name="uq_risk_scores_org_year"),)

    org_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    score: Mapped[float] = mapped_column(Float, nullable=False)
    dependency_ratio: Mapped[float] = mapped_column(Float, nullable=False)
    transparency_index: Mapped[float] = mapped_column(Float, nullable=False)

    def __repr__(self) -> str:
        return f"<RiskScore org={self.org_id[:8]} year={self.year} score={self.score}>"
