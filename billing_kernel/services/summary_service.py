"""
SummaryService -- month-level aggregate over billing records.

Responsibility:
    Recomputes the MonthlySummary of a month from every MonthlyBillingRecord
    of that month, owns the summary's lock flag, and drops whole open months.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by BillingOrchestrator after each panel commit (in its own
    transaction) and by MonthCloseOrchestrator / MonthRegenerator.

Invariants enforced:
    - Full overwrite: every recompute is a re-scan, never an increment, so
      concurrent or repeated recomputes converge on the same totals.
    - Sums run on integer cents.
    - is_locked / locked_at survive recompute.

Failure modes:
    - SummaryNotFoundError: lock toggled on, or deletion of, a month without
      a summary.
    - MonthLockedError: deletion of a locked month.
"""

from uuid import UUID

from sqlalchemy import delete, select

from billing_kernel.domain.calendar import next_month_key, parse_month_key
from billing_kernel.domain.dtos import MonthDeletion, MonthlySummaryInfo
from billing_kernel.domain.money import BILLING_MONTH_DAYS, from_cents, sum_cents, to_cents
from billing_kernel.domain.values import SCHEMA_VERSION, SYSTEM_ACTOR_ID
from billing_kernel.exceptions import SummaryNotFoundError
from billing_kernel.logging_config import get_logger
from billing_kernel.models.billing import MonthlyBillingRecord, MonthlySummary
from billing_kernel.models.panel_event import PanelEvent
from billing_kernel.selectors.event_selector import EventSelector
from billing_kernel.services.base import BaseService

logger = get_logger("services.summary")


class SummaryService(BaseService[MonthlySummary]):
    """
    Maintains billing_summary rows.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT recalculate panels; it only aggregates what is stored.
    """

    def _get(self, month_key: str) -> MonthlySummary | None:
        return self.session.execute(
            select(MonthlySummary).where(MonthlySummary.month_key == month_key)
        ).scalar_one_or_none()

    def recompute_summary(
        self,
        month_key: str,
        actor_id: UUID = SYSTEM_ACTOR_ID,
    ) -> MonthlySummaryInfo:
        """
        Rebuild the summary of ``month_key`` from its billing records.

        Creates the summary row when the month has none yet.
        """
        parse_month_key(month_key)

        records = self.session.execute(
            select(MonthlyBillingRecord.billable_days, MonthlyBillingRecord.amount)
            .where(MonthlyBillingRecord.month_key == month_key)
        ).all()

        amounts_cents = [to_cents(amount) for _, amount in records]
        fully_billed = sum(1 for days, _ in records if days >= BILLING_MONTH_DAYS)
        partial = sum(1 for days, _ in records if 0 < days < BILLING_MONTH_DAYS)
        billable = sum(1 for cents in amounts_cents if cents > 0)
        total_events = EventSelector(self.session).count_live_events(month_key)

        summary = self._get(month_key)
        if summary is None:
            summary = MonthlySummary(
                month_key=month_key,
                is_locked=False,
                created_by_id=actor_id,
            )
            self.session.add(summary)

        summary.total_amount = from_cents(sum_cents(amounts_cents))
        summary.fully_billed_count = fully_billed
        summary.partial_count = partial
        summary.billable_panel_count = billable
        summary.non_positive_count = len(records) - billable
        summary.panel_count = len(records)
        summary.total_events = total_events
        summary.schema_version = SCHEMA_VERSION
        summary.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "summary_recomputed",
            extra={
                "month_key": month_key,
                "total_amount": summary.total_amount,
                "panel_count": summary.panel_count,
                "fully_billed_count": fully_billed,
                "partial_count": partial,
                "is_locked": summary.is_locked,
            },
        )
        return MonthlySummaryInfo.from_model(summary)

    def ensure_summary(
        self,
        month_key: str,
        actor_id: UUID = SYSTEM_ACTOR_ID,
    ) -> MonthlySummaryInfo:
        """Open, empty summary for ``month_key`` unless one exists."""
        parse_month_key(month_key)
        summary = self._get(month_key)
        if summary is None:
            summary = MonthlySummary(
                month_key=month_key,
                is_locked=False,
                created_by_id=actor_id,
            )
            self.session.add(summary)
            self.session.flush()
            logger.info("summary_created", extra={"month_key": month_key})
        return MonthlySummaryInfo.from_model(summary)

    def set_lock(self, month_key: str, locked: bool, actor_id: UUID) -> MonthlySummaryInfo:
        """
        Lock or reopen a month.

        Reopening a month whose successor already has a summary is allowed
        but logged, since edits will not flow forward on their own.

        Raises:
            SummaryNotFoundError: If the month has no summary.
        """
        summary = self._get(month_key)
        if summary is None:
            raise SummaryNotFoundError(month_key)

        if summary.is_locked == locked:
            return MonthlySummaryInfo.from_model(summary)

        if not locked and self._get(next_month_key(month_key)) is not None:
            logger.warning(
                "month_reopened_with_successor",
                extra={"month_key": month_key, "next_month_key": next_month_key(month_key)},
            )

        summary.is_locked = locked
        summary.locked_at = self._clock.now() if locked else None
        summary.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "month_locked" if locked else "month_unlocked",
            extra={"month_key": month_key},
        )
        return MonthlySummaryInfo.from_model(summary)

    def is_locked(self, month_key: str) -> bool:
        return self._month_is_locked(month_key)

    def delete_month(self, month_key: str, actor_id: UUID) -> MonthDeletion:
        """
        Drop a month: its summary, every billing record and every event
        dated in it.  Panels themselves are kept.

        Raises:
            SummaryNotFoundError: The month was never opened.
            MonthLockedError: The month is closed; reopen it first.
        """
        summary = self._get(month_key)
        if summary is None:
            raise SummaryNotFoundError(month_key)
        self._require_open_month(month_key, "delete_month")

        records_deleted = self.session.execute(
            delete(MonthlyBillingRecord).where(MonthlyBillingRecord.month_key == month_key)
        ).rowcount
        events_deleted = self.session.execute(
            delete(PanelEvent).where(PanelEvent.month_key == month_key)
        ).rowcount
        self.session.delete(summary)
        self.session.flush()

        logger.info(
            "month_deleted",
            extra={
                "month_key": month_key,
                "deleted_by": str(actor_id),
                "records_deleted": records_deleted,
                "events_deleted": events_deleted,
            },
        )
        return MonthDeletion(month_key, records_deleted, events_deleted)
