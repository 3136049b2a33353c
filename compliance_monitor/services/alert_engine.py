"""Alert evaluation engine: runs every check, suppresses duplicates, persists new alerts."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import timedelta

import structlog

from compliance_monitor.clock import Clock, SystemClock
from compliance_monitor.errors import OrganizationNotFound
from compliance_monitor.schemas.alerts import Alert
from compliance_monitor.services.alert_triggers import (
    DAF_RATIO_INCREASE,
    MISSING_990,
    TOP_DONOR_CONCENTRATION,
    TriggerResult,
    check_daf_ratio_increase,
    check_missing_990_filing,
    check_top_donor_concentration,
)
from compliance_monitor.store import ComplianceStore

logger = structlog.get_logger()

DEFAULT_DEDUP_WINDOW = timedelta(days=7)


class AlertEngine:
    """Evaluate alert rules for organizations and store the alerts they raise.

    At most one alert per (organization, alert type) is created inside the
    trailing dedup window. Dedup-then-insert is serialised per organization
    within this process; separate processes sharing a store can still race.
    """

    def __init__(
        self,
        store: ComplianceStore,
        clock: Clock | None = None,
        dedup_window: timedelta = DEFAULT_DEDUP_WINDOW,
    ) -> None:
        self.store = store
        self.clock = clock or SystemClock()
        self.dedup_window = dedup_window
        # org_id -> [lock, runs holding or waiting on it]
        self._org_locks: dict[str, list] = {}
        self._locks_guard = threading.Lock()

    def _checks(self, org_id: str) -> list[tuple[str, Callable[[], TriggerResult | None]]]:
        return [
            (DAF_RATIO_INCREASE, lambda: check_daf_ratio_increase(self.store, org_id)),
            (
                TOP_DONOR_CONCENTRATION,
                lambda: check_top_donor_concentration(self.store, org_id, clock=self.clock),
            ),
            (MISSING_990, lambda: check_missing_990_filing(self.store, org_id, clock=self.clock)),
        ]

    @contextmanager
    def _org_lock(self, org_id: str) -> Iterator[None]:
        """Hold the organization's lock; the entry is dropped once no run needs it."""
        with self._locks_guard:
            entry = self._org_locks.setdefault(org_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._org_locks[org_id]

    def evaluate_organization(self, org_id: str) -> list[Alert]:
        """Run all checks for one organization.

        A failing check is logged and skipped; the remaining checks still run.

        Returns:
            The alerts created by this run (possibly empty).
        """
        created: list[Alert] = []
        with self._org_lock(org_id):
            for alert_type, check in self._checks(org_id):
                try:
                    result = check()
                    if result is None:
                        continue
                    alert = self._persist_unless_duplicate(org_id, result)
                except Exception as exc:
                    logger.exception(
                        "alert_check_failed",
                        check=alert_type,
                        org_id=org_id,
                        error=str(exc),
                    )
                    continue
                if alert is not None:
                    created.append(alert)

        logger.info("alert_evaluation_completed", org_id=org_id, alerts_created=len(created))
        return created

    def _persist_unless_duplicate(self, org_id: str, result: TriggerResult) -> Alert | None:
        now = self.clock.now()
        existing = self.store.find_recent_alert(org_id, result.alert_type, now - self.dedup_window)
        if existing is not None:
            logger.info(
                "alert_suppressed",
                org_id=org_id,
                alert_type=result.alert_type,
                existing_alert_id=existing.id,
            )
            return None

        alert = Alert(
            organization_id=org_id,
            alert_type=result.alert_type,
            severity=result.severity,
            title=result.title,
            description=result.description,
            metadata=result.metadata,
            is_read=False,
            created_at=now,
        )
        self.store.insert_alert(alert)
        logger.info(
            "alert_created",
            org_id=org_id,
            alert_id=alert.id,
            alert_type=alert.alert_type,
            severity=alert.severity,
        )
        return alert

    def evaluate_known_organization(self, org_id: str) -> list[Alert]:
        """Like ``evaluate_organization`` but refuses ids the store does not know."""
        if self.store.get_organization(org_id) is None:
            raise OrganizationNotFound(org_id)
        return self.evaluate_organization(org_id)

    def evaluate_all(self) -> dict[str, int]:
        """Evaluate every organization; returns created-alert counts by organization id."""
        results: dict[str, int] = {}
        for org in self.store.list_organizations():
            results[org.id] = len(self.evaluate_organization(org.id))
        logger.info(
            "alert_batch_completed",
            organizations=len(results),
            alerts_created=sum(results.values()),
        )
        return results
