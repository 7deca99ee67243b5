"""
Module: billing_kernel.selectors.billing_selector
Responsibility: Read access to monthly billing records and month summaries.
Architecture position: Kernel > Selectors.

The recalculation engine's prior-state read is a point lookup by
``(panel_id, previous_month_key)``; the summary cascade scans every record
of a month.
"""

from uuid import UUID

from sqlalchemy import select

from billing_kernel.domain.dtos import BillingRecordInfo, MonthlySummaryInfo
from billing_kernel.models.billing import MonthlyBillingRecord, MonthlySummary
from billing_kernel.selectors.base import BaseSelector


class BillingSelector(BaseSelector[MonthlyBillingRecord]):
    """Queries over billing_monthly_panel and billing_summary."""

    def get_record(self, panel_id: UUID, month_key: str) -> BillingRecordInfo | None:
        return self._first_dto(
            select(MonthlyBillingRecord).where(
                MonthlyBillingRecord.panel_id == panel_id,
                MonthlyBillingRecord.month_key == month_key,
            ),
            BillingRecordInfo.from_model,
        )

    def records_for_month(self, month_key: str) -> list[BillingRecordInfo]:
        """Every billing record of a month, ordered by panel code."""
        return self._all_dtos(
            select(MonthlyBillingRecord)
            .where(MonthlyBillingRecord.month_key == month_key)
            .order_by(MonthlyBillingRecord.panel_code),
            BillingRecordInfo.from_model,
        )

    def panel_ids_for_month(self, month_key: str) -> list[UUID]:
        """Panels that have a billing record in ``month_key``."""
        return list(
            self.session.execute(
                select(MonthlyBillingRecord.panel_id)
                .where(MonthlyBillingRecord.month_key == month_key)
                .order_by(MonthlyBillingRecord.panel_code)
            ).scalars()
        )

    def get_summary(self, month_key: str) -> MonthlySummaryInfo | None:
        return self._first_dto(
            select(MonthlySummary).where(MonthlySummary.month_key == month_key),
            MonthlySummaryInfo.from_model,
        )

    def summary_exists(self, month_key: str) -> bool:
        return self.get_summary(month_key) is not None
