"""Data access layer for the Compliance Monitor.

``ComplianceStore`` is the contract the engine reads and writes through.
``DataStore`` keeps everything in process memory and is the default for
development and testing; ``SqlDataStore`` (see ``sql_store``) backs the same
contract with a relational database.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Protocol

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


class ComplianceStore(Protocol):
    """Operations the engine needs from the data store."""

    def get_organization(self, org_id: str) -> Organization | None: ...

    def list_organizations(self) -> list[Organization]: ...

    def get_latest_daf_records(self, org_id: str, limit: int = 2) -> list[DafRecord]: ...

    def get_donors_for_year(self, org_id: str, year: int) -> list[DonorRecord]: ...

    def get_latest_filing(self, org_id: str) -> FilingRecord | None: ...

    def find_recent_alert(self, org_id: str, alert_type: str, since: datetime) -> Alert | None: ...

    def insert_alert(self, alert: Alert) -> Alert: ...

    def get_alert(self, alert_id: str) -> Alert | None: ...

    def set_alert_read(self, alert_id: str, is_read: bool) -> Alert | None: ...

    def list_alerts(
        self,
        organization_id: str | None = None,
        unread_only: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Alert], int]: ...

    def get_grants_for_recipient(self, org_id: str) -> list[Grant]: ...

    def list_grants(self) -> list[Grant]: ...

    def get_risk_score(self, org_id: str, year: int | None = None) -> RiskScore | None: ...

    def upsert_risk_score(self, score: RiskScore) -> RiskScore: ...

    def list_risk_scores(self) -> list[RiskScore]: ...

    def add_audit_entry(self, entry: AuditEntry) -> None: ...

    def count_audit_entries(self, action: str, result: str | None = None) -> int: ...

    def ping(self) -> None: ...


class DataStore:
    """Thread-safe in-memory data store for development and testing.

    Every read and write holds ``_lock``; reads return fresh lists.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self.organizations: dict[str, Organization] = {}
        self.daf_records: dict[str, list[DafRecord]] = {}  # org_id -> list
        self.donors: dict[str, list[DonorRecord]] = {}
        self.filings: dict[str, list[FilingRecord]] = {}
        self.grants: list[Grant] = []
        self.risk_scores: dict[tuple[str, int], RiskScore] = {}  # (org_id, year) -> score
        self.alerts: dict[str, Alert] = {}
        self.audit_log: list[AuditEntry] = []

    def reset(self) -> None:
        """Clear all data: used in tests."""
        with self._lock:
            self.organizations = {}
            self.daf_records = {}
            self.donors = {}
            self.filings = {}
            self.grants = []
            self.risk_scores = {}
            self.alerts = {}
            self.audit_log = []

    def ping(self) -> None:
        return None

    # Organizations

    def add_organization(self, org: Organization) -> Organization:
        """Add or update an organization."""
        with self._lock:
            self.organizations[org.id] = org
        return org

    def get_organization(self, org_id: str) -> Organization | None:
        with self._lock:
            return self.organizations.get(org_id)

    def list_organizations(self) -> list[Organization]:
        with self._lock:
            return list(self.organizations.values())

    # Financial and filing records

    def add_daf_record(self, record: DafRecord) -> DafRecord:
        with self._lock:
            self.daf_records.setdefault(record.organization_id, []).append(record)
        return record

    def get_latest_daf_records(self, org_id: str, limit: int = 2) -> list[DafRecord]:
        """Most recent DAF snapshots, newest year first."""
        with self._lock:
            records = list(self.daf_records.get(org_id, []))
        records.sort(key=lambda r: r.year, reverse=True)
        return records[:limit]

    def add_donor(self, donor: DonorRecord) -> DonorRecord:
        with self._lock:
            self.donors.setdefault(donor.organization_id, []).append(donor)
        return donor

    def get_donors_for_year(self, org_id: str, year: int) -> list[DonorRecord]:
        """Donor contributions for one year, largest first."""
        with self._lock:
            donors = [d for d in self.donors.get(org_id, []) if d.contribution_year == year]
        return sorted(donors, key=lambda d: d.total_contribution, reverse=True)

    def add_filing(self, filing: FilingRecord) -> FilingRecord:
        with self._lock:
            self.filings.setdefault(filing.organization_id, []).append(filing)
        return filing

    def get_latest_filing(self, org_id: str) -> FilingRecord | None:
        with self._lock:
            filings = list(self.filings.get(org_id, []))
        if not filings:
            return None
        return max(filings, key=lambda f: f.filing_date)

    def add_grant(self, grant: Grant) -> Grant:
        with self._lock:
            self.grants.append(grant)
        return grant

    def get_grants_for_recipient(self, org_id: str) -> list[Grant]:
        with self._lock:
            return [g for g in self.grants if g.recipient_id == org_id]

    def list_grants(self) -> list[Grant]:
        with self._lock:
            return list(self.grants)

    def upsert_risk_score(self, score: RiskScore) -> RiskScore:
        """Insert or replace the score for (org, year)."""
        with self._lock:
            self.risk_scores[(score.org_id, score.year)] = score
        return score

    def get_risk_score(self, org_id: str, year: int | None = None) -> RiskScore | None:
        """Score for a given year, or the most recent one when no year is given."""
        with self._lock:
            if year is not None:
                return self.risk_scores.get((org_id, year))
            candidates = [s for (oid, _), s in self.risk_scores.items() if oid == org_id]
        if not candidates:
            return None
        return max(candidates, key=lambda s: s.year)

    def list_risk_scores(self) -> list[RiskScore]:
        with self._lock:
            return list(self.risk_scores.values())

    # Alerts

    def find_recent_alert(self, org_id: str, alert_type: str, since: datetime) -> Alert | None:
        """First alert of this type for the org created at or after ``since``."""
        with self._lock:
            for alert in self.alerts.values():
                if (
                    alert.organization_id == org_id
                    and alert.alert_type == alert_type
                    and alert.created_at >= since
                ):
                    return alert
        return None

    def insert_alert(self, alert: Alert) -> Alert:
        with self._lock:
            self.alerts[alert.id] = alert
        return alert

    def get_alert(self, alert_id: str) -> Alert | None:
        with self._lock:
            return self.alerts.get(alert_id)

    def set_alert_read(self, alert_id: str, is_read: bool) -> Alert | None:
        with self._lock:
            alert = self.alerts.get(alert_id)
            if alert is None:
                return None
            updated = alert.model_copy(update={"is_read": is_read})
            self.alerts[alert_id] = updated
        return updated

    def list_alerts(
        self,
        organization_id: str | None = None,
        unread_only: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Alert], int]:
        """Alerts newest first, with the total count before pagination."""
        with self._lock:
            alerts = list(self.alerts.values())
        if organization_id:
            alerts = [a for a in alerts if a.organization_id == organization_id]
        if unread_only:
            alerts = [a for a in alerts if not a.is_read]
        alerts.sort(key=lambda a: a.created_at, reverse=True)
        return alerts[offset : offset + limit], len(alerts)

    # Audit

    def add_audit_entry(self, entry: AuditEntry) -> None:
        with self._lock:
            self.audit_log.append(entry)

    def list_audit_entries(self, limit: int = 100) -> list[AuditEntry]:
        with self._lock:
            return self.audit_log[-limit:]

    def count_audit_entries(self, action: str, result: str | None = None) -> int:
        with self._lock:
            return sum(
                1
                for entry in self.audit_log
                if entry.action == action and (result is None or entry.result == result)
            )


# Global singleton: replaced in tests
data_store = DataStore()
