"""Relational implementation of the data access layer on SQLAlchemy."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

import structlog
from sqlalchemy import Engine, create_engine, func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from compliance_monitor import models
from compliance_monitor.errors import StoreError
from compliance_monitor.schemas.alerts import Alert
from compliance_monitor.schemas.audit import AuditEntry
from compliance_monitor.schemas.financials import (
    DafRecord,
    DonorRecord,
    FilingRecord,
    Grant,
    Organization,
    RiskScore,
)

logger = structlog.get_logger()


def _as_utc(value: datetime) -> datetime:
    """SQLite drops tzinfo on the way back; every stored timestamp is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_grant(row: models.Grant) -> Grant:
    return Grant(
        id=row.id,
        donor_id=row.donor_id,
        recipient_id=row.recipient_id,
        amount=float(row.amount),
        year=row.year,
        confirmed=row.confirmed,
        source_file=row.source_file,
    )


def _to_risk_score(row: models.RiskScore) -> RiskScore:
    return RiskScore(
        id=row.id,
        org_id=row.org_id,
        year=row.year,
        score=row.score,
        dependency_ratio=row.dependency_ratio,
        transparency_index=row.transparency_index,
    )


def _to_alert(row: models.Alert) -> Alert:
    return Alert(
        id=row.id,
        organization_id=row.organization_id,
        alert_type=row.alert_type,
        severity=row.severity,
        title=row.title,
        description=row.description,
        metadata=row.metadata_,
        is_read=row.is_read,
        created_at=_as_utc(row.created_at),
    )


class SqlDataStore:
    """``ComplianceStore`` backed by any SQLAlchemy-supported database."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, database_url: str, create_schema: bool = False) -> "SqlDataStore":
        store = cls(create_engine(database_url))
        if create_schema:
            store.create_schema()
        return store

    def create_schema(self) -> None:
        """Create all tables. Production databases are migrated with alembic instead."""
        models.Base.metadata.create_all(self.engine)

    @contextmanager
    def _session(self, operation: str, org_id: str | None = None) -> Iterator[Session]:
        session = self._sessions()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("store_operation_failed", operation=operation, org_id=org_id, error=str(exc))
            raise StoreError(operation, str(exc), org_id=org_id) from exc
        finally:
            session.close()

    def ping(self) -> None:
        with self._session("ping") as session:
            session.execute(text("SELECT 1"))

    # Organizations

    def add_organization(self, org: Organization) -> Organization:
        with self._session("add_organization", org.id) as session:
            session.merge(models.Organization(**org.model_dump()))
        return org

    def get_organization(self, org_id: str) -> Organization | None:
        with self._session("get_organization", org_id) as session:
            row = session.get(models.Organization, org_id)
            if row is None:
                return None
            return Organization(id=row.id, name=row.name, ein=row.ein, mission=row.mission, website=row.website)

    def list_organizations(self) -> list[Organization]:
        with self._session("list_organizations") as session:
            rows = session.scalars(select(models.Organization).order_by(models.Organization.name))
            return [
                Organization(id=r.id, name=r.name, ein=r.ein, mission=r.mission, website=r.website)
                for r in rows
            ]

    # Financial and filing records

    def add_daf_record(self, record: DafRecord) -> DafRecord:
        with self._session("add_daf_record", record.organization_id) as session:
            session.add(models.DafRecord(**record.model_dump()))
        return record

    def get_latest_daf_records(self, org_id: str, limit: int = 2) -> list[DafRecord]:
        with self._session("get_latest_daf_records", org_id) as session:
            rows = session.scalars(
                select(models.DafRecord)
                .where(models.DafRecord.organization_id == org_id)
                .order_by(models.DafRecord.year.desc())
                .limit(limit)
            )
            return [
                DafRecord(
                    id=r.id,
                    organization_id=r.organization_id,
                    year=r.year,
                    daf_ratio=r.daf_ratio,
                    total_contributions=r.total_contributions,
                )
                for r in rows
            ]

    def add_donor(self, donor: DonorRecord) -> DonorRecord:
        with self._session("add_donor", donor.organization_id) as session:
            session.add(models.Donor(**donor.model_dump()))
        return donor

    def get_donors_for_year(self, org_id: str, year: int) -> list[DonorRecord]:
        with self._session("get_donors_for_year", org_id) as session:
            rows = session.scalars(
                select(models.Donor)
                .where(models.Donor.organization_id == org_id, models.Donor.contribution_year == year)
                .order_by(models.Donor.total_contribution.desc())
            )
            return [
                DonorRecord(
                    id=r.id,
                    organization_id=r.organization_id,
                    name=r.name,
                    total_contribution=r.total_contribution,
                    contribution_year=r.contribution_year,
                )
                for r in rows
            ]

    def add_filing(self, filing: FilingRecord) -> FilingRecord:
        with self._session("add_filing", filing.organization_id) as session:
            session.add(models.Filing990(**filing.model_dump()))
        return filing

    def get_latest_filing(self, org_id: str) -> FilingRecord | None:
        with self._session("get_latest_filing", org_id) as session:
            row = session.scalars(
                select(models.Filing990)
                .where(models.Filing990.organization_id == org_id)
                .order_by(models.Filing990.filing_date.desc())
                .limit(1)
            ).first()
            if row is None:
                return None
            return FilingRecord(
                id=row.id,
                organization_id=row.organization_id,
                filing_date=row.filing_date,
                tax_year=row.tax_year,
                status=row.status,
            )

    def add_grant(self, grant: Grant) -> Grant:
        with self._session("add_grant", grant.recipient_id) as session:
            session.add(models.Grant(**grant.model_dump()))
        return grant

    def get_grants_for_recipient(self, org_id: str) -> list[Grant]:
        with self._session("get_grants_for_recipient", org_id) as session:
            rows = session.scalars(
                select(models.Grant)
                .where(models.Grant.recipient_id == org_id)
                .order_by(models.Grant.year.desc(), models.Grant.created_at)
            )
            return [_to_grant(r) for r in rows]

    def list_grants(self) -> list[Grant]:
        with self._session("list_grants") as session:
            rows = session.scalars(select(models.Grant).order_by(models.Grant.created_at))
            return [_to_grant(r) for r in rows]

    def upsert_risk_score(self, score: RiskScore) -> RiskScore:
        with self._session("upsert_risk_score", score.org_id) as session:
            existing = session.scalars(
                select(models.RiskScore).where(
                    models.RiskScore.org_id == score.org_id, models.RiskScore.year == score.year
                )
            ).first()
            if existing is None:
                session.add(models.RiskScore(**score.model_dump()))
                return score
            existing.score = score.score
            existing.dependency_ratio = score.dependency_ratio
            existing.transparency_index = score.transparency_index
            return score.model_copy(update={"id": existing.id})

    def get_risk_score(self, org_id: str, year: int | None = None) -> RiskScore | None:
        with self._session("get_risk_score", org_id) as session:
            query = select(models.RiskScore).where(models.RiskScore.org_id == org_id)
            if year is not None:
                query = query.where(models.RiskScore.year == year)
            row = session.scalars(query.order_by(models.RiskScore.year.desc()).limit(1)).first()
            return _to_risk_score(row) if row is not None else None

    def list_risk_scores(self) -> list[RiskScore]:
        with self._session("list_risk_scores") as session:
            rows = session.scalars(
                select(models.RiskScore).order_by(models.RiskScore.org_id, models.RiskScore.year)
            )
            return [_to_risk_score(r) for r in rows]

    # Alerts

    def find_recent_alert(self, org_id: str, alert_type: str, since: datetime) -> Alert | None:
        with self._session("find_recent_alert", org_id) as session:
            row = session.scalars(
                select(models.Alert)
                .where(
                    models.Alert.organization_id == org_id,
                    models.Alert.alert_type == alert_type,
                    models.Alert.created_at >= since,
                )
                .limit(1)
            ).first()
            return _to_alert(row) if row is not None else None

    def insert_alert(self, alert: Alert) -> Alert:
        with self._session("insert_alert", alert.organization_id) as session:
            session.add(
                models.Alert(
                    id=alert.id,
                    organization_id=alert.organization_id,
                    alert_type=alert.alert_type,
                    severity=alert.severity,
                    title=alert.title,
                    description=alert.description,
                    metadata_=alert.metadata.model_dump(mode="json"),
                    is_read=alert.is_read,
                    created_at=alert.created_at,
                )
            )
        return alert

    def get_alert(self, alert_id: str) -> Alert | None:
        with self._session("get_alert") as session:
            row = session.get(models.Alert, alert_id)
            return _to_alert(row) if row is not None else None

    def set_alert_read(self, alert_id: str, is_read: bool) -> Alert | None:
        with self._session("set_alert_read") as session:
            row = session.get(models.Alert, alert_id)
            if row is None:
                return None
            row.is_read = is_read
            session.flush()
            return _to_alert(row)

    def list_alerts(
        self,
        organization_id: str | None = None,
        unread_only: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Alert], int]:
        with self._session("list_alerts", organization_id) as session:
            query = select(models.Alert)
            if organization_id:
                query = query.where(models.Alert.organization_id == organization_id)
            if unread_only:
                query = query.where(models.Alert.is_read.is_(False))
            total = session.scalar(select(func.count()).select_from(query.subquery())) or 0
            rows = session.scalars(
                query.order_by(models.Alert.created_at.desc()).offset(offset).limit(limit)
            )
            return [_to_alert(r) for r in rows], total

    # Audit

    def add_audit_entry(self, entry: AuditEntry) -> None:
        with self._session("add_audit_entry", entry.org_id) as session:
            session.add(models.AuditLogEntry(**entry.model_dump()))

    def list_audit_entries(self, limit: int = 100) -> list[AuditEntry]:
        with self._session("list_audit_entries") as session:
            rows = session.scalars(
                select(models.AuditLogEntry).order_by(models.AuditLogEntry.timestamp.desc()).limit(limit)
            )
            entries = [
                AuditEntry(
                    id=r.id,
                    timestamp=_as_utc(r.timestamp),
                    user_id=r.user_id,
                    org_id=r.org_id,
                    action=r.action,
                    resource=r.resource,
                    result=r.result,
                    details=r.details,
                    ip_address=r.ip_address,
                    user_agent=r.user_agent,
                )
                for r in rows
            ]
            return list(reversed(entries))

    def count_audit_entries(self, action: str, result: str | None = None) -> int:
        with self._session("count_audit_entries") as session:
            query = select(func.count()).select_from(models.AuditLogEntry).where(
                models.AuditLogEntry.action == action
            )
            if result is not None:
                query = query.where(models.AuditLogEntry.result == result)
            return session.scalar(query) or 0
