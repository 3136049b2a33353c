"""Schemas for alerts and alert endpoints."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

AlertType = Literal["daf_ratio_increase", "top_donor_concentration", "missing_990"]
AlertSeverity = Literal["low", "medium", "high"]


class DafRatioMetadata(BaseModel):
    """Inputs behind a DAF ratio increase alert."""

    kind: Literal["daf_ratio_increase"] = "daf_ratio_increase"
    current_year: int
    current_ratio: float
    previous_year: int
    previous_ratio: float
    percentage_increase: float


class DonorConcentrationMetadata(BaseModel):
    """Inputs behind a top donor concentration alert."""

    kind: Literal["top_donor_concentration"] = "top_donor_concentration"
    year: int
    top_donor_name: str
    top_donor_amount: float
    total_contributions: float
    percentage: float
    donor_count: int


class FilingGapMetadata(BaseModel):
    """Inputs behind a missing 990 alert. All fields are null when nothing was ever filed."""

    kind: Literal["missing_990"] = "missing_990"
    last_filing_date: date | None = None
    last_tax_year: int | None = None
    months_overdue: int | None = None
    days_overdue: int | None = None


AlertMetadata = Annotated[
    Union[DafRatioMetadata, DonorConcentrationMetadata, FilingGapMetadata],
    Field(discriminator="kind"),
]


class Alert(BaseModel):
    """A stored compliance alert."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    organization_id: str
    alert_type: AlertType
    severity: AlertSeverity
    title: str
    description: str
    metadata: AlertMetadata
    is_read: bool = False
    created_at: datetime


class AlertListResponse(BaseModel):
    """Paginated alert listing."""

    alerts: list[Alert]
    total: int
    limit: int
    offset: int


class AlertUpdateRequest(BaseModel):
    """Mark an alert as read or unread."""

    alert_id: str = Field(..., min_length=1)
    is_read: bool


class AlertUpdateResponse(BaseModel):
    alert: Alert


class EvaluationResponse(BaseModel):
    """Outcome of an evaluation run for one organization."""

    organization_id: str
    alerts_created: int
    alerts: list[Alert]


class BatchEvaluationResponse(BaseModel):
    """Outcome of an evaluation run across all organizations."""

    organizations_evaluated: int
    alerts_created: int
    results: dict[str, int]
