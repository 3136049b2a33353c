"""Alert trigger rules: turn financial and filing records into alert candidates.

Each check reads one category of data for one organization and returns a
``TriggerResult`` when its rule fires, or None. Missing or insufficient
history is a normal "no trigger" outcome, never an error. Checks only read
from the store; persisting alerts is the engine's job.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone

import structlog

from compliance_monitor.clock import Clock, SystemClock
from compliance_monitor.schemas.alerts import (
    AlertSeverity,
    AlertType,
    DafRatioMetadata,
    DonorConcentrationMetadata,
    FilingGapMetadata,
)
from compliance_monitor.services.numbers import (
    format_currency,
    format_number,
    safe_percentage,
    tier_severity,
)
from compliance_monitor.store import ComplianceStore

logger = structlog.get_logger()


DAF_RATIO_INCREASE = "daf_ratio_increase"
TOP_DONOR_CONCENTRATION = "top_donor_concentration"
MISSING_990 = "missing_990"

# DAF ratio year-over-year increase, in percent
DAF_INCREASE_THRESHOLD = 20.0
DAF_INCREASE_MEDIUM = 35.0
DAF_INCREASE_HIGH = 50.0

# Share of the year's contributions held by the largest donor, in percent
DONOR_CONCENTRATION_THRESHOLD = 60.0
DONOR_CONCENTRATION_MEDIUM = 70.0
DONOR_CONCENTRATION_HIGH = 80.0

# Months are a fixed 30 days, not calendar months
APPROX_MONTH = timedelta(days=30)
FILING_GAP_MONTHS = 18
FILING_GAP_MEDIUM_MONTHS = 24
FILING_GAP_HIGH_MONTHS = 30


@dataclass(frozen=True)
class TriggerResult:
    """An alert candidate produced by a check."""

    alert_type: AlertType
    severity: AlertSeverity
    title: str
    description: str
    metadata: DafRatioMetadata | DonorConcentrationMetadata | FilingGapMetadata


def check_daf_ratio_increase(store: ComplianceStore, org_id: str) -> TriggerResult | None:
    """Fire when the DAF ratio rose by more than 20% over the previous year on record."""
    records = store.get_latest_daf_records(org_id, limit=2)
    if len(records) < 2:
        logger.debug("insufficient_daf_history", org_id=org_id, records=len(records))
        return None

    current, previous = records[0], records[1]
    increase = current.daf_ratio - previous.daf_ratio
    percentage_increase = safe_percentage(increase, previous.daf_ratio)
    if percentage_increase is None:
        logger.warning(
            "data_quality_guard",
            check=DAF_RATIO_INCREASE,
            org_id=org_id,
            reason="previous DAF ratio is zero",
            previous_year=previous.year,
        )
        return None

    if percentage_increase <= DAF_INCREASE_THRESHOLD:
        return None

    severity = tier_severity(percentage_increase, DAF_INCREASE_HIGH, DAF_INCREASE_MEDIUM)
    return TriggerResult(
        alert_type=DAF_RATIO_INCREASE,
        severity=severity,
        title=f"DAF Ratio Increased by {percentage_increase:.1f}% YoY",
        description=(
            f"The DAF ratio increased from {format_number(previous.daf_ratio)}% ({previous.year}) "
            f"to {format_number(current.daf_ratio)}% ({current.year}), representing a "
            f"{percentage_increase:.1f}% year-over-year increase."
        ),
        metadata=DafRatioMetadata(
            current_year=current.year,
            current_ratio=current.daf_ratio,
            previous_year=previous.year,
            previous_ratio=previous.daf_ratio,
            percentage_increase=percentage_increase,
        ),
    )


def check_top_donor_concentration(
    store: ComplianceStore,
    org_id: str,
    year: int | None = None,
    clock: Clock | None = None,
) -> TriggerResult | None:
    """Fire when the largest donor gave more than 60% of a year's contributions.

    Args:
        store: Data access layer.
        org_id: Organization to inspect.
        year: Contribution year. Defaults to the clock's current year.
        clock: Time source used for the default year.

    Returns:
        A trigger result, or None when there are no donors, the total is
        zero, or the concentration is within bounds.
    """
    clock = clock or SystemClock()
    year = year or clock.now().year

    donors = store.get_donors_for_year(org_id, year)
    if not donors:
        logger.debug("no_donor_data", org_id=org_id, year=year)
        return None

    total = sum(d.total_contribution for d in donors)
    top_donor = max(donors, key=lambda d: d.total_contribution)
    top_percentage = safe_percentage(top_donor.total_contribution, total)
    if top_percentage is None:
        logger.warning(
            "data_quality_guard",
            check=TOP_DONOR_CONCENTRATION,
            org_id=org_id,
            reason="total contributions are zero",
            year=year,
        )
        return None

    if top_percentage <= DONOR_CONCENTRATION_THRESHOLD:
        return None

    severity = tier_severity(top_percentage, DONOR_CONCENTRATION_HIGH, DONOR_CONCENTRATION_MEDIUM)
    return TriggerResult(
        alert_type=TOP_DONOR_CONCENTRATION,
        severity=severity,
        title=f"Top Donor Concentration at {top_percentage:.1f}%",
        description=(
            f"The top donor ({top_donor.name}) contributed {top_percentage:.1f}% of total "
            f"contributions in {year}, exceeding the 60% threshold. "
            f"Total: {format_currency(top_donor.total_contribution)} of {format_currency(total)}."
        ),
        metadata=DonorConcentrationMetadata(
            year=year,
            top_donor_name=top_donor.name,
            top_donor_amount=top_donor.total_contribution,
            total_contributions=total,
            percentage=top_percentage,
            donor_count=len(donors),
        ),
    )


def check_missing_990_filing(
    store: ComplianceStore,
    org_id: str,
    clock: Clock | None = None,
) -> TriggerResult | None:
    """Fire when the latest 990 filing is more than 18 (30-day) months old.

    An organization with no filings at all always fires at high severity.
    Exactly 18 months does not fire.
    """
    clock = clock or SystemClock()
    now = clock.now()

    last_filing = store.get_latest_filing(org_id)
    if last_filing is None:
        return TriggerResult(
            alert_type=MISSING_990,
            severity="high",
            title="No 990 Filings Found",
            description=(
                "This organization has no 990 filings on record, "
                "which is a significant compliance concern."
            ),
            metadata=FilingGapMetadata(),
        )

    filed_at = datetime.combine(last_filing.filing_date, time.min, tzinfo=timezone.utc)
    elapsed = now - filed_at
    if elapsed <= APPROX_MONTH * FILING_GAP_MONTHS:
        return None

    months_overdue = elapsed // APPROX_MONTH
    days_overdue = elapsed.days
    severity = tier_severity(months_overdue, FILING_GAP_HIGH_MONTHS, FILING_GAP_MEDIUM_MONTHS)
    return TriggerResult(
        alert_type=MISSING_990,
        severity=severity,
        title=f"990 Filing Overdue by {months_overdue} Months",
        description=(
            f"The most recent 990 filing was on {last_filing.filing_date.isoformat()} "
            f"({months_overdue} months ago), exceeding the 18-month threshold. "
            f"Tax year: {last_filing.tax_year}."
        ),
        metadata=FilingGapMetadata(
            last_filing_date=last_filing.filing_date,
            last_tax_year=last_filing.tax_year,
            months_overdue=months_overdue,
            days_overdue=days_overdue,
        ),
    )
