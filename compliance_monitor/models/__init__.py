"""Database models for the Compliance Monitor."""

from compliance_monitor.models.base import Base
from compliance_monitor.models.organization import Organization
from compliance_monitor.models.financials import DafRecord, Donor, Filing990, Grant, RiskScore
from compliance_monitor.models.alert import Alert, AuditLogEntry

__all__ = [
    "Base",
    "Organization",
    "DafRecord",
    "Donor",
    "Filing990",
    "Grant",
    "RiskScore",
    "Alert",
    "AuditLogEntry",
]
