"""Authentication, role-based authorization, per-user rate limiting, and the audit trail."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

import structlog
from fastapi import Depends, Request
from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter

from compliance_monitor.clock import Clock
from compliance_monitor.errors import AuthenticationRequired, PermissionDenied, ReportRateLimited
from compliance_monitor.schemas.audit import AuditEntry
from compliance_monitor.store import ComplianceStore

logger = structlog.get_logger()


_STAFF_PERMISSIONS = frozenset(
    {
        "report:generate",
        "report:read",
        "alert:read",
        "alert:update",
        "alert:evaluate",
        "metrics:read",
        "risk:score",
    }
)

ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    "owner": _STAFF_PERMISSIONS,
    "analyst": _STAFF_PERMISSIONS,
    "client": frozenset({"report:generate", "report:read", "alert:read"}),
}

# Roles that may act on any organization; others are confined to their own
CROSS_ORG_ROLES = frozenset({"owner", "analyst"})


@dataclass(frozen=True)
class SecurityContext:
    """Who is calling, resolved from the bearer token."""

    is_authenticated: bool = False
    user_id: str | None = None
    org_id: str | None = None
    role: str | None = None
    permissions: frozenset[str] = field(default_factory=frozenset)

    def has_permission(self, permission: str) -> bool:
        return self.is_authenticated and permission in self.permissions

    def can_access_org(self, org_id: str) -> bool:
        if not self.is_authenticated:
            return False
        if self.role in CROSS_ORG_ROLES:
            return True
        return self.org_id == org_id


ANONYMOUS = SecurityContext()


def resolve_token(request: Request) -> SecurityContext:
    """Map the ``Authorization: Bearer <token>`` header to a security context."""
    header = request.headers.get("authorization", "")
    if not header.startswith("Bearer "):
        return ANONYMOUS
    token = header[len("Bearer ") :].strip()
    grant = request.app.state.settings.access_tokens.get(token)
    if grant is None:
        return ANONYMOUS
    return SecurityContext(
        is_authenticated=True,
        user_id=grant.user_id,
        org_id=grant.org_id,
        role=grant.role,
        permissions=ROLE_PERMISSIONS.get(grant.role, frozenset()),
    )


def get_security_context(request: Request) -> SecurityContext:
    context = resolve_token(request)
    request.state.security = context
    return context


def require_permission(permission: str):
    """Dependency factory: 401 when unauthenticated, 403 without ``permission``."""

    def _dependency(context: SecurityContext = Depends(get_security_context)) -> SecurityContext:
        if not context.is_authenticated:
            raise AuthenticationRequired()
        if not context.has_permission(permission):
            raise PermissionDenied()
        return context

    return _dependency


def ensure_org_access(context: SecurityContext, org_id: str) -> None:
    if not context.can_access_org(org_id):
        raise PermissionDenied("Access to this organization is not permitted")


class RateLimiter:
    """Fixed-window limiter with its own storage, scoped to one application instance.

    State lives as long as the instance; it is not shared between processes.
    """

    def __init__(self, limit: str) -> None:
        self.item = parse(limit)
        self._limiter = FixedWindowRateLimiter(MemoryStorage())

    def hit(self, identifier: str) -> tuple[bool, int, float]:
        """Consume one request. Returns (allowed, remaining, reset_at_epoch)."""
        allowed = self._limiter.hit(self.item, identifier)
        stats = self._limiter.get_window_stats(self.item, identifier)
        return allowed, stats.remaining, stats.reset_time


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class AuditTrail:
    """Record security-relevant actions in the store and the log stream."""

    def __init__(self, store: ComplianceStore, clock: Clock) -> None:
        self.store = store
        self.clock = clock

    def record(
        self,
        request: Request,
        context: SecurityContext,
        action: str,
        resource: str,
        result: str,
        org_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> AuditEntry:
        entry = AuditEntry(
            timestamp=self.clock.now(),
            user_id=context.user_id,
            org_id=org_id or context.org_id,
            action=action,
            resource=resource,
            result=result,
            details=details or {},
            ip_address=client_ip(request),
            user_agent=request.headers.get("user-agent", "unknown"),
        )
        logger.info("audit_event", **entry.model_dump(mode="json", exclude={"id"}))
        try:
            self.store.add_audit_entry(entry)
        except Exception as exc:
            # Audit persistence never fails the request.
            logger.error("audit_persist_failed", action=action, error=str(exc))
        return entry


def enforce_report_rate_limit(
    request: Request,
    context: SecurityContext = Depends(get_security_context),
) -> None:
    """429 once a caller exceeds the report generation limit."""
    limiter: RateLimiter = request.app.state.report_limiter
    identifier = context.user_id or client_ip(request)
    allowed, remaining, reset_at = limiter.hit(identifier)
    request.state.rate_limit_remaining = remaining
    if allowed:
        return
    retry_after = max(0, int(reset_at - time.time()))
    request.app.state.audit.record(
        request, context, "rate_limit_exceeded", "report", "failure", details={"identifier": identifier}
    )
    raise ReportRateLimited(retry_after)
