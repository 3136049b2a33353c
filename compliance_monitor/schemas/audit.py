"""Schemas for the audit trail."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class AuditEntry(BaseModel):
    """A security-relevant action taken through the API."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime
    user_id: str | None = None
    org_id: str | None = None
    action: str
    resource: str
    result: Literal["success", "failure", "error"]
    details: dict[str, Any] = Field(default_factory=dict)
    ip_address: str = "unknown"
    user_agent: str = "unknown"
