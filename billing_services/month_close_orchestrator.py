"""
billing_services.month_close_orchestrator -- month close, lock toggling, deletion.

Responsibility:
    Closes the previous calendar month (final summary recompute, then lock)
    and toggles a month's lock on operator request.  A locked month accepts
    no new, corrected or deleted events.  An open month can also be dropped
    entirely.

Architecture position:
    Services -- stateful orchestration over SummaryService.  Opens its own
    transactions from the injected session factory.

Failure modes:
    - SummaryNotFoundError from toggle_lock or delete_month on a month
      without a summary.
    - MonthLockedError from delete_month on a closed month.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from billing_kernel.db.engine import session_scope
from billing_kernel.domain.calendar import previous_month_key
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.dtos import MonthDeletion, MonthlySummaryInfo
from billing_kernel.domain.values import SYSTEM_ACTOR_ID
from billing_kernel.logging_config import LogContext, get_logger
from billing_kernel.selectors.billing_selector import BillingSelector
from billing_kernel.services.summary_service import SummaryService

logger = get_logger("services.month_close")


class MonthCloseOrchestrator:
    """
    Month close job and lock toggling.

    Guarantees:
        - close_previous_month is idempotent: an already locked month is
          returned untouched.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()

    def close_previous_month(self, actor_id: UUID = SYSTEM_ACTOR_ID) -> MonthlySummaryInfo:
        """Recompute and lock the month before the clock's current month."""
        month_key = previous_month_key(self._clock.month_key())

        with LogContext.bind(month_key=month_key, actor_id=str(actor_id)):
            with session_scope(self._session_factory) as session:
                summaries = SummaryService(session, self._clock)
                if summaries.is_locked(month_key):
                    logger.info("month_already_closed", extra={"month_key": month_key})
                    return BillingSelector(session).get_summary(month_key)

                summaries.recompute_summary(month_key, actor_id)
                summary = summaries.set_lock(month_key, True, actor_id)

            logger.info(
                "month_closed",
                extra={
                    "month_key": month_key,
                    "total_amount": summary.total_amount,
                    "panel_count": summary.panel_count,
                },
            )
        return summary

    def toggle_lock(self, month_key: str, locked: bool, actor_id: UUID) -> MonthlySummaryInfo:
        """Lock or reopen ``month_key``."""
        with LogContext.bind(month_key=month_key, actor_id=str(actor_id)):
            with session_scope(self._session_factory) as session:
                return SummaryService(session, self._clock).set_lock(
                    month_key, locked, actor_id
                )

    def delete_month(self, month_key: str, actor_id: UUID) -> MonthDeletion:
        """Drop an open month's summary, billing records and events."""
        with LogContext.bind(month_key=month_key, actor_id=str(actor_id)):
            with session_scope(self._session_factory) as session:
                return SummaryService(session, self._clock).delete_month(month_key, actor_id)
