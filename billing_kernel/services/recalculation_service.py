"""
RecalculationService -- reads, pure recalculation, and the record write.

Responsibility:
    For one ``(panel_id, month_key)``: resolves the standard rate, reads the
    previous month's billing record and this month's event log, runs the
    pure recalculation core, then overwrites the billing record and, for the
    current or a future month, the panel's live status.

Architecture position:
    Kernel > Services -- imperative shell around domain/recalculation.py.
    Flush-only: BillingOrchestrator wraps the call in session_scope() so
    the record write and the live-status write commit together.

Invariants enforced:
    - The standard rate of the target year is resolved before anything else;
      its absence aborts with nothing written.
    - Historical months never touch Panel.status.
    - The billing record is overwritten field by field, never merged.

Failure modes:
    - InvalidMonthKeyError: malformed month key.
    - PanelNotFoundError: panel does not exist.
    - ConfigurationMissingError: no standard rate for the target year.
"""

from dataclasses import replace
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from billing_kernel.domain.calendar import (
    is_current_or_future,
    parse_month_key,
    previous_month_key,
    year_of,
)
from billing_kernel.domain.clock import Clock
from billing_kernel.domain.dtos import RecalculationResult
from billing_kernel.domain.recalculation import compute_month
from billing_kernel.domain.values import SCHEMA_VERSION, SYSTEM_ACTOR_ID
from billing_kernel.exceptions import PanelNotFoundError
from billing_kernel.logging_config import get_logger
from billing_kernel.models.billing import MonthlyBillingRecord
from billing_kernel.models.panel import Panel
from billing_kernel.selectors.billing_selector import BillingSelector
from billing_kernel.selectors.event_selector import EventSelector
from billing_kernel.selectors.panel_selector import PanelSelector
from billing_kernel.services.base import BaseService
from billing_kernel.services.rate_service import RateService

logger = get_logger("services.recalculation")


class RecalculationService(BaseService[MonthlyBillingRecord]):
    """
    Recalculates and stores one panel-month.

    Contract:
        ``recalculate()`` leaves the session flushed, not committed.

    Non-goals:
        - Does NOT recompute the month summary; that is the cascade step
          owned by BillingOrchestrator.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self._rates = RateService(session)
        self._billing = BillingSelector(session)
        self._events = EventSelector(session)
        self._panels = PanelSelector(session)

    def recalculate(
        self,
        panel_id: UUID,
        month_key: str,
        actor_id: UUID = SYSTEM_ACTOR_ID,
    ) -> RecalculationResult:
        """
        Recalculate ``month_key`` for ``panel_id`` and write the outcome.

        Returns:
            The RecalculationResult that was persisted.
        """
        parse_month_key(month_key)

        panel = self.session.get(Panel, panel_id)
        if panel is None:
            raise PanelNotFoundError(str(panel_id))

        standard_rate = self._rates.standard_rate(year_of(month_key))

        prior_record = self._billing.get_record(panel_id, previous_month_key(month_key))
        prior = prior_record.to_prior_state() if prior_record is not None else None
        facts = self._events.events_for_month(panel_id, month_key)

        result = replace(
            compute_month(month_key, prior, facts, standard_rate),
            panel_id=panel_id,
        )
        self._log_anomalies(panel_id, month_key, result)

        self._write_record(panel, month_key, result, actor_id)

        live_status_updated = is_current_or_future(month_key, self._clock.now())
        if live_status_updated:
            panel.status = result.closing_status.value
            panel.updated_by_id = actor_id

        self.session.flush()

        logger.info(
            "recalculation_completed",
            extra={
                "panel_id": str(panel_id),
                "month_key": month_key,
                "billable_days": result.billable_days,
                "amount": result.amount,
                "closing_status": result.closing_status,
                "applied_rate": result.applied_rate,
                "rate_source": result.initial_state.rate_source,
                "event_count": result.event_count,
                "periods": [[p.start_day, p.end_day] for p in result.periods],
                "live_status_updated": live_status_updated,
            },
        )
        return result

    def _write_record(
        self,
        panel: Panel,
        month_key: str,
        result: RecalculationResult,
        actor_id: UUID,
    ) -> None:
        label = self._panels.municipality_label(panel.municipality_ref)
        record = self.session.execute(
            select(MonthlyBillingRecord).where(
                MonthlyBillingRecord.panel_id == panel.id,
                MonthlyBillingRecord.month_key == month_key,
            )
        ).scalar_one_or_none()

        fields = {
            "billable_days": result.billable_days,
            "amount": result.amount,
            "closing_status": result.closing_status.value,
            "applied_rate": result.applied_rate,
            "panel_code": panel.code,
            "municipality_label": label,
            "schema_version": SCHEMA_VERSION,
        }
        if record is None:
            self.session.add(
                MonthlyBillingRecord(
                    panel_id=panel.id,
                    month_key=month_key,
                    created_by_id=actor_id,
                    **fields,
                )
            )
            return

        for name, value in fields.items():
            setattr(record, name, value)
        record.updated_by_id = actor_id

    def _log_anomalies(
        self,
        panel_id: UUID,
        month_key: str,
        result: RecalculationResult,
    ) -> None:
        for anomaly in result.anomalies:
            extra = {
                "panel_id": str(panel_id),
                "month_key": month_key,
                "event_id": str(anomaly.event_id),
                "action": anomaly.action.value,
                "day_of_month": anomaly.day_of_month,
                "status": anomaly.status.value,
            }
            if anomaly.kind == "intervention_on_inactive_panel":
                logger.warning(anomaly.kind, extra=extra)
            else:
                logger.debug(anomaly.kind, extra=extra)
