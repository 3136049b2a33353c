"""Failure kinds surfaced by the compliance engine."""

from __future__ import annotations

from typing import Any


class ComplianceError(Exception):
    """Base class for every named failure the service reports."""

    title = "Compliance error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] | None = None
        self.headers: dict[str, str] | None = None


class AuthenticationRequired(ComplianceError):
    """Raised when a request carries no valid bearer token."""

    title = "Unauthorized"

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class PermissionDenied(ComplianceError):
    """Raised when the caller lacks a permission or organization access."""

    title = "Forbidden"

    def __init__(self, message: str = "Insufficient permissions") -> None:
        super().__init__(message)


class ReportRateLimited(ComplianceError):
    """Raised when a caller exceeds the report generation limit."""

    title = "Rate limit exceeded"

    def __init__(self, retry_after: int) -> None:
        super().__init__("Too many report requests. Please try again later.")
        self.retry_after = retry_after
        self.headers = {"Retry-After": str(retry_after), "X-RateLimit-Remaining": "0"}


class OrganizationNotFound(ComplianceError):
    """Raised when an organization id does not resolve."""

    title = "Organization not found"

    def __init__(self, org_id: str) -> None:
        super().__init__(f"No organization found with ID: {org_id}")
        self.org_id = org_id


class AlertNotFound(ComplianceError):
    """Raised when an alert id does not resolve."""

    title = "Alert not found"

    def __init__(self, alert_id: str) -> None:
        super().__init__(f"No alert found with ID: {alert_id}")
        self.alert_id = alert_id


class ReportNotFound(ComplianceError):
    """Raised when a stored report artifact does not exist."""

    title = "Report not found"

    def __init__(self, path: str) -> None:
        super().__init__(f"No report found at: {path}")
        self.path = path


class ReportValidationError(ComplianceError):
    """Raised when a report request fails a check that needs the clock or the store."""

    title = "Validation failed"

    def __init__(self, field: str, message: str) -> None:
        super().__init__("Request validation failed")
        self.details = {field: [message]}


class UpstreamError(ComplianceError):
    """Raised when a collaborator (store, renderer, storage) fails."""

    title = "Upstream failure"

    def __init__(self, operation: str, message: str, org_id: str | None = None) -> None:
        context = f"{operation} failed"
        if org_id:
            context += f" for organization {org_id}"
        super().__init__(f"{context}: {message}")
        self.operation = operation
        self.org_id = org_id


class StoreError(UpstreamError):
    """Raised when the data store rejects or fails a query."""

    title = "Data store failure"


class ReportDeliveryError(UpstreamError):
    """Raised when rendering, uploading, or signing a report fails."""

    title = "Failed to generate PDF"
