"""
Module: billing_kernel.models.panel_event
Responsibility: ORM persistence for the panel event log -- the only source of
    truth driving monthly recalculation.
Architecture position: Kernel > Models.  May import from db/base.py,
    db/types.py and domain/values.py only.

Invariants enforced:
    - Events are never physically deleted.  Removal is a soft delete
      (is_deleted, deleted_at, deleted_by_id).
    - idempotency_key is unique (uq_panel_event_idempotency).
    - month_key and day_of_month are derived from effective_date_local at
      recording time and never change afterwards.

Audit relevance:
    snapshot_before / snapshot_after capture the panel as it looked around
    the event so that an operator can reconstruct what was changed.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TrackedBase, UTCDateTime, UUIDString
from billing_kernel.domain.values import EventAction, SCHEMA_VERSION


class PanelEvent(TrackedBase):
    """
    A dated fact about a panel.

    Contract:
        Read back by ``(panel_id, month_key)`` including soft-deleted rows;
        the recalculation engine filters and orders them in memory.

    Non-goals:
        - This model does NOT validate that ``amount`` / ``rate`` match the
          action; PanelEventService does that at recording time.
    """

    __tablename__ = "panel_events"

    __table_args__ = (
        UniqueConstraint("idempotency_key", name="uq_panel_event_idempotency"),
        Index("idx_panel_event_panel_month", "panel_id", "month_key"),
        Index("idx_panel_event_month", "month_key"),
    )

    panel_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    action: Mapped[EventAction] = mapped_column(String(30), nullable=False)

    # YYYY-MM
    month_key: Mapped[str] = mapped_column(String(7), nullable=False)

    # YYYY-MM-DD in the panel's local timezone
    effective_date_local: Mapped[str] = mapped_column(String(32), nullable=False)

    # Precise instant, when the source knew it
    effective_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
    )

    day_of_month: Mapped[int] = mapped_column(Integer, nullable=False)

    # Signed adjustment / intervention amount
    amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)

    # Target rate of a RATE_CHANGE
    rate: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)

    intervention_kind: Mapped[str | None] = mapped_column(
        String(30),
        nullable=True,
    )

    reason: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    snapshot_before: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    snapshot_after: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    is_deleted: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    deleted_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
    )

    deleted_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    idempotency_key: Mapped[str] = mapped_column(String(300), nullable=False)

    # When the event was written; tie-breaker for same-instant events
    recorded_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
    )

    schema_version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=SCHEMA_VERSION,
    )

    def __repr__(self) -> str:
        return (
            f"<PanelEvent {self.action} {self.effective_date_local}"
            f"{' deleted' if self.is_deleted else ''}>"
        )

    def soft_delete(self, actor_id: UUID, deleted_at: datetime) -> None:
        """Mark the event deleted.

        Raises: ValueError if already deleted.
        """
        if self.is_deleted:
            raise ValueError(f"Event {self.id} is already deleted")
        self.is_deleted = True
        self.deleted_at = deleted_at
        self.deleted_by_id = actor_id
        self.updated_by_id = actor_id
