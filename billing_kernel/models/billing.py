"""
Module: billing_kernel.models.billing
Responsibility: ORM persistence for the derived billing projections: one
    MonthlyBillingRecord per (panel, month) and one MonthlySummary per month.
Architecture position: Kernel > Models.  May import from db/base.py,
    db/types.py and domain/values.py only.

Invariants enforced:
    - billable_days is within [0, 30] (ck_billing_days_range).
    - One record per (panel_id, month_key) (uq_billing_panel_month).
    - One summary per month_key (uq_summary_month).
    - Both tables are fully overwritten on recompute, never merged.  The
      summary's lock flag is the only field authored directly.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TrackedBase, UTCDateTime, UUIDString
from billing_kernel.domain.values import PanelStatus, SCHEMA_VERSION


class MonthlyBillingRecord(TrackedBase):
    """
    Billing outcome of one panel for one month.

    Contract:
        Written only by RecalculationService.  Its persistent identity is the
        ``(panel_id, month_key)`` pair; the row id carries no meaning.
    """

    __tablename__ = "billing_monthly_panel"

    __table_args__ = (
        UniqueConstraint("panel_id", "month_key", name="uq_billing_panel_month"),
        CheckConstraint(
            "billable_days >= 0 AND billable_days <= 30",
            name="ck_billing_days_range",
        ),
        Index("idx_billing_month", "month_key"),
    )

    panel_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    month_key: Mapped[str] = mapped_column(String(7), nullable=False)

    billable_days: Mapped[int] = mapped_column(Integer, nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)

    closing_status: Mapped[PanelStatus] = mapped_column(String(20), nullable=False)

    # Nullable so that records imported without a rate can fall back to the
    # standard rate on the next month's recalculation
    applied_rate: Mapped[Decimal | None] = mapped_column(
        Numeric(18, 2),
        nullable=True,
    )

    panel_code: Mapped[str] = mapped_column(String(50), nullable=False)

    municipality_label: Mapped[str] = mapped_column(String(200), nullable=False)

    schema_version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=SCHEMA_VERSION,
    )

    def __repr__(self) -> str:
        return (
            f"<MonthlyBillingRecord {self.panel_code} {self.month_key}: "
            f"{self.billable_days}d {self.amount}>"
        )

    def to_document(self) -> dict[str, Any]:
        """Exported shape of the record."""
        return {
            "panel_id": str(self.panel_id),
            "month_key": self.month_key,
            "billable_days": self.billable_days,
            "amount": self.amount,
            "closing_status": PanelStatus(self.closing_status).value,
            "applied_rate": self.applied_rate,
            "panel_code": self.panel_code,
            "municipality_label": self.municipality_label,
            "schema_version": self.schema_version,
        }


class MonthlySummary(TrackedBase):
    """
    Aggregate over every MonthlyBillingRecord of a month.

    Contract:
        Recomputed from scratch by SummaryService.  ``is_locked`` and
        ``locked_at`` survive every recompute.
    """

    __tablename__ = "billing_summary"

    __table_args__ = (
        UniqueConstraint("month_key", name="uq_summary_month"),
    )

    month_key: Mapped[str] = mapped_column(String(7), nullable=False)

    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(18, 2),
        nullable=False,
        default=Decimal("0.00"),
    )

    # billable_days >= 30
    fully_billed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # 0 < billable_days < 30
    partial_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # amount > 0
    billable_panel_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )

    # amount <= 0
    non_positive_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    panel_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Non-deleted events recorded for the month
    total_events: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    locked_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
    )

    schema_version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=SCHEMA_VERSION,
    )

    def __repr__(self) -> str:
        lock = " locked" if self.is_locked else ""
        return f"<MonthlySummary {self.month_key}: {self.total_amount}{lock}>"

    def to_document(self) -> dict[str, Any]:
        """Exported shape of the summary."""
        return {
            "month_key": self.month_key,
            "total_amount": self.total_amount,
            "fully_billed_count": self.fully_billed_count,
            "partial_count": self.partial_count,
            "billable_panel_count": self.billable_panel_count,
            "non_positive_count": self.non_positive_count,
            "panel_count": self.panel_count,
            "total_events": self.total_events,
            "is_locked": self.is_locked,
            "schema_version": self.schema_version,
        }
