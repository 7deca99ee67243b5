"""
billing_services.billing_orchestrator -- recalculation trigger and admin actions.

Responsibility:
    Owns the transactions around monthly recalculation.  ``recalculate_month``
    is the single trigger every administrative action ends with: the billing
    record and the panel's live status commit together, then the month
    summary is recomputed in a separate transaction.  Deleting a panel
    recomputes the summary of every month the panel was billed in.

Architecture position:
    Services -- stateful orchestration over the kernel.  The only layer that
    opens sessions (from an injected session factory) and commits.

Invariants enforced:
    - Record write and live-status write share one transaction.
    - A failed summary cascade never rolls back or fails the panel commit.
    - A store-level OperationalError at commit surfaces as
      TransientStoreError; the same call can simply be retried.

Failure modes:
    - Typed kernel errors (PanelNotFoundError, ConfigurationMissingError,
      MonthLockedError, ...) propagate after rollback.
    - TransientStoreError on contention or timeout.
    - CascadeFailureError is logged, never raised.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from billing_kernel.db.engine import session_scope
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.dtos import EventInfo, PanelInfo, PanelRemoval, RecalculationResult
from billing_kernel.domain.values import SYSTEM_ACTOR_ID, EventAction, InterventionKind
from billing_kernel.exceptions import (
    CascadeFailureError,
    EventNotFoundError,
    TransientStoreError,
)
from billing_kernel.logging_config import LogContext, get_logger
from billing_kernel.selectors.event_selector import EventSelector
from billing_kernel.services.panel_event_service import PanelEventService
from billing_kernel.services.panel_service import PanelService
from billing_kernel.services.recalculation_service import RecalculationService
from billing_kernel.services.summary_service import SummaryService

logger = get_logger("services.billing")


class BillingOrchestrator:
    """
    Recalculation trigger plus the admin actions that end with it.

    Contract:
        Receives the session factory and Clock via constructor injection.
        Every public method opens its own sessions; callers never pass one.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()

    def recalculate_month(
        self,
        panel_id: UUID,
        month_key: str,
        actor_id: UUID = SYSTEM_ACTOR_ID,
        cascade: bool = True,
    ) -> RecalculationResult:
        """
        Recalculate one panel-month, commit it, then cascade the summary.

        Bulk callers pass ``cascade=False`` and call cascade() once at the
        end of the run.

        Raises:
            TransientStoreError: The commit hit a store-level failure.
        """
        with LogContext.bind(panel_id=str(panel_id), month_key=month_key):
            try:
                with session_scope(self._session_factory) as session:
                    result = RecalculationService(session, self._clock).recalculate(
                        panel_id, month_key, actor_id
                    )
            except OperationalError as exc:
                logger.error(
                    "recalculation_store_failure",
                    extra={"detail": str(exc.orig) if exc.orig else str(exc)},
                )
                raise TransientStoreError("recalculate_month", str(exc)) from exc

            if cascade:
                self.cascade(month_key)
            return result

    def cascade(self, month_key: str) -> bool:
        """
        Recompute the month summary in its own transaction.

        Returns:
            True when the summary was recomputed, False when it failed (the
            failure is logged as CascadeFailureError).
        """
        try:
            with session_scope(self._session_factory) as session:
                SummaryService(session, self._clock).recompute_summary(month_key)
        except Exception as exc:
            failure = CascadeFailureError(month_key, str(exc))
            logger.error(
                "summary_cascade_failed",
                extra={
                    "month_key": month_key,
                    "error_code": failure.code,
                    "detail": failure.detail,
                },
                exc_info=True,
            )
            return False
        return True

    # ------------------------------------------------------------------
    # Admin actions
    # ------------------------------------------------------------------

    def record_event(
        self,
        panel_id: UUID,
        action: EventAction | str,
        effective_date_local: str,
        actor_id: UUID,
        *,
        effective_at: datetime | None = None,
        amount: Decimal | None = None,
        rate: Decimal | None = None,
        intervention_kind: InterventionKind | str | None = None,
        reason: str | None = None,
        idempotency_key: str | None = None,
    ) -> tuple[EventInfo, RecalculationResult]:
        """Record an event, then recalculate its month."""
        with LogContext.bind(actor_id=str(actor_id), panel_id=str(panel_id)):
            with session_scope(self._session_factory) as session:
                event = PanelEventService(session, self._clock).record_event(
                    panel_id,
                    action,
                    effective_date_local,
                    actor_id,
                    effective_at=effective_at,
                    amount=amount,
                    rate=rate,
                    intervention_kind=intervention_kind,
                    reason=reason,
                    idempotency_key=idempotency_key,
                )
            result = self.recalculate_month(panel_id, event.month_key, actor_id)
        return event, result

    def delete_event(
        self,
        event_id: UUID,
        actor_id: UUID,
    ) -> tuple[EventInfo, RecalculationResult]:
        """Soft-delete an event, then recalculate its month."""
        with LogContext.bind(actor_id=str(actor_id), event_id=str(event_id)):
            with session_scope(self._session_factory) as session:
                event = PanelEventService(session, self._clock).soft_delete_event(
                    event_id, actor_id
                )
            result = self.recalculate_month(event.panel_id, event.month_key, actor_id)
        return event, result

    def update_event(
        self,
        event_id: UUID,
        actor_id: UUID,
        **changes,
    ) -> tuple[EventInfo, list[RecalculationResult]]:
        """
        Correct an event, then recalculate every month it touched.

        ``changes`` are the keyword fields of PanelEventService.update_event.
        When the new date moves the event to another month, the month it
        left is recalculated first, then the month it landed in.
        """
        with LogContext.bind(actor_id=str(actor_id), event_id=str(event_id)):
            with session_scope(self._session_factory) as session:
                before = EventSelector(session).get_event(event_id)
                if before is None:
                    raise EventNotFoundError(str(event_id))
                event = PanelEventService(session, self._clock).update_event(
                    event_id, actor_id, **changes
                )
            months = [before.month_key]
            if event.month_key != before.month_key:
                months.append(event.month_key)
            results = [
                self.recalculate_month(event.panel_id, month_key, actor_id)
                for month_key in months
            ]
        return event, results

    def delete_panel(self, panel_id: UUID, confirm_code: str, actor_id: UUID) -> PanelRemoval:
        """
        Remove a panel with its event log and billing records, then recompute
        the summary of every month it was billed in.

        A failed summary recompute is logged and leaves that month's flag in
        ``PanelRemoval.summaries_recomputed`` False; the deletion stands.
        """
        with LogContext.bind(actor_id=str(actor_id), panel_id=str(panel_id)):
            with session_scope(self._session_factory) as session:
                removal = PanelService(session, self._clock).delete_panel(
                    panel_id, confirm_code, actor_id
                )
            recomputed = tuple(self.cascade(month_key) for month_key in removal.affected_months)
        return replace(removal, summaries_recomputed=recomputed)

    def create_panel(
        self,
        code: str,
        municipality_ref: str,
        intake_date: str,
        actor_id: UUID,
        base_rate: Decimal | None = None,
        location: str | None = None,
    ) -> tuple[PanelInfo, RecalculationResult]:
        """Register a panel with its intake event, then bill the intake month."""
        with LogContext.bind(actor_id=str(actor_id)):
            with session_scope(self._session_factory) as session:
                panel, intake = PanelService(session, self._clock).create_panel(
                    code,
                    municipality_ref,
                    intake_date,
                    actor_id,
                    base_rate=base_rate,
                    location=location,
                )
            result = self.recalculate_month(panel.id, intake.month_key, actor_id)
        return panel, result
