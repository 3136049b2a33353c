"""Initial schema: organizations, financial facts, alerts, audit log.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def _org_fk(name: str = "organization_id") -> sa.Column:
    return sa.Column(
        name,
        sa.String(36),
        sa.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    # Organizations
    op.create_table(
        "organizations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("ein", sa.String(10), unique=True, nullable=True),
        sa.Column("mission", sa.Text, nullable=True),
        sa.Column("website", sa.String(500), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_organizations_name", "organizations", ["name"])
    op.create_index("ix_organizations_ein", "organizations", ["ein"])

    # DAF ratio snapshots
    op.create_table(
        "daf_records",
        sa.Column("id", sa.String(36), primary_key=True),
        _org_fk(),
        sa.Column("year", sa.Integer, nullable=False),
        sa.Column("daf_ratio", sa.Float, nullable=False),
        sa.Column("total_contributions", sa.Float, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_daf_records_organization_id", "daf_records", ["organization_id"])

    # Donors
    op.create_table(
        "donors",
        sa.Column("id", sa.String(36), primary_key=True),
        _org_fk(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("total_contribution", sa.Float, nullable=False, server_default="0"),
        sa.Column("contribution_year", sa.Integer, nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_donors_organization_id", "donors", ["organization_id"])
    op.create_index("ix_donors_contribution_year", "donors", ["contribution_year"])

    # 990 filings
    op.create_table(
        "filings_990",
        sa.Column("id", sa.String(36), primary_key=True),
        _org_fk(),
        sa.Column("filing_date", sa.Date, nullable=False),
        sa.Column("tax_year", sa.Integer, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="filed"),
        *_timestamps(),
    )
    op.create_index("ix_filings_990_organization_id", "filings_990", ["organization_id"])
    op.create_index("ix_filings_990_filing_date", "filings_990", ["filing_date"])

    # Grants
    op.create_table(
        "grants",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("donor_id", sa.String(36), nullable=True),
        _org_fk("recipient_id"),
        sa.Column("amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("year", sa.Integer, nullable=False),
        sa.Column("confirmed", sa.Boolean, server_default=sa.false()),
        sa.Column("source_file", sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_grants_donor_id", "grants", ["donor_id"])
    op.create_index("ix_grants_recipient_id", "grants", ["recipient_id"])
    op.create_index("ix_grants_year", "grants", ["year"])

    # Risk scores
    op.create_table(
        "risk_scores",
        sa.Column("id", sa.String(36), primary_key=True),
        _org_fk("org_id"),
        sa.Column("year", sa.Integer, nullable=False),
        sa.Column("score", sa.Float, nullable=False),
        sa.Column("dependency_ratio", sa.Float, nullable=False),
        sa.Column("transparency_index", sa.Float, nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("org_id", "year", name="uq_risk_scores_org_year"),
    )
    op.create_index("ix_risk_scores_org_id", "risk_scores", ["org_id"])

    # Alerts
    op.create_table(
        "alerts",
        sa.Column("id", sa.String(36), primary_key=True),
        _org_fk(),
        sa.Column("alert_type", sa.String(50), nullable=False),
        sa.Column("severity", sa.String(10), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("metadata", sa.JSON, nullable=False),
        sa.Column("is_read", sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_alerts_organization_id", "alerts", ["organization_id"])
    op.create_index(
        "ix_alerts_org_type_created", "alerts", ["organization_id", "alert_type", "created_at"]
    )

    # Audit log
    op.create_table(
        "audit_log",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("user_id", sa.String(100), nullable=True),
        sa.Column("org_id", sa.String(100), nullable=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("resource", sa.String(100), nullable=False),
        sa.Column("result", sa.String(10), nullable=False),
        sa.Column("details", sa.JSON, nullable=False),
        sa.Column("ip_address", sa.String(64), nullable=False, server_default="unknown"),
        sa.Column("user_agent", sa.String(500), nullable=False, server_default="unknown"),
        *_timestamps(),
    )
    op.create_index("ix_audit_log_timestamp", "audit_log", ["timestamp"])
    op.create_index("ix_audit_log_user_id", "audit_log", ["user_id"])


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("alerts")
    op.drop_table("risk_scores")
    op.drop_table("grants")
    op.drop_table("filings_990")
    op.drop_table("donors")
    op.drop_table("daf_records")
    op.drop_table("organizations")
