"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that flow through monthly
    recalculation: EventFact and PriorMonthState (inputs), InitialState,
    BillingPeriod and PeriodConstruction (intermediate), RecalculationResult
    (output), plus read-side snapshots of panels, billing records, summaries
    and rates returned by selectors, and the outcome of panel and month
    deletions.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods exist as boundary converters but are only
    invoked from the service and selector layers (never from domain logic).

Failure modes:
    - ValueError on BillingPeriod with start_day > end_day.

Data flow:
    PriorMonthState + [EventFact] -> InitialState -> PeriodConstruction
        -> RecalculationResult
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from billing_kernel.domain.values import EventAction, PanelStatus

if TYPE_CHECKING:
    from billing_kernel.models.billing import (
        MonthlyBillingRecord as MonthlyBillingRecordModel,
    )
    from billing_kernel.models.billing import MonthlySummary as MonthlySummaryModel
    from billing_kernel.models.panel import Panel as PanelModel
    from billing_kernel.models.panel_event import PanelEvent as PanelEventModel
    from billing_kernel.models.rate import YearlyRate as YearlyRateModel


@dataclass(frozen=True)
class EventFact:
    """
    One panel event as the recalculation engine sees it.

    Contract:
        ``day_of_month`` is already extracted from ``effective_date_local``.
        Soft-deleted facts may be present; order_events() drops them.
    """

    event_id: UUID
    action: EventAction
    effective_date_local: str
    day_of_month: int
    effective_at: datetime | None = None
    recorded_at: datetime | None = None
    amount: Decimal | None = None
    rate: Decimal | None = None
    is_deleted: bool = False

    @classmethod
    def from_model(cls, model: PanelEventModel) -> EventFact:
        return cls(
            event_id=model.id,
            action=EventAction(model.action),
            effective_date_local=model.effective_date_local,
            day_of_month=model.day_of_month,
            effective_at=model.effective_at,
            recorded_at=model.recorded_at,
            amount=model.amount,
            rate=model.rate,
            is_deleted=bool(model.is_deleted),
        )


@dataclass(frozen=True)
class PriorMonthState:
    """Closing state carried over from the previous month's billing record."""

    month_key: str
    closing_status: PanelStatus
    applied_rate: Decimal | None


@dataclass(frozen=True)
class InitialState:
    """
    State the month opens with.

    ``rate_source`` is one of ``"inherited"``, ``"rollover"``, ``"standard"``
    (no prior record) or ``"fallback"`` (prior record without a rate).
    """

    status: PanelStatus
    applied_rate: Decimal
    rate_source: str


@dataclass(frozen=True)
class BillingPeriod:
    """Inclusive day range during which the panel was ACTIVE."""

    start_day: int
    end_day: int

    def __post_init__(self) -> None:
        if self.start_day > self.end_day:
            raise ValueError(
                f"Period start {self.start_day} is after end {self.end_day}"
            )

    @property
    def days(self) -> int:
        return self.end_day - self.start_day + 1


@dataclass(frozen=True)
class Anomaly:
    """
    Something the state machine tolerated but an operator may want to see.

    Kinds: ``redundant_activation``, ``redundant_deactivation``,
    ``intervention_on_inactive_panel``.
    """

    kind: str
    event_id: UUID
    action: EventAction
    day_of_month: int
    status: PanelStatus


@dataclass(frozen=True)
class PeriodConstruction:
    """Output of the period state machine."""

    periods: tuple[BillingPeriod, ...]
    closing_status: PanelStatus
    applied_rate: Decimal
    adjustment_cents: int
    anomalies: tuple[Anomaly, ...] = ()


@dataclass(frozen=True)
class RecalculationResult:
    """
    Billing outcome of one panel for one month, before persistence.

    Guarantees:
        - 0 <= billable_days <= 30.
        - amount has exactly two decimal places.
    """

    month_key: str
    billable_days: int
    amount: Decimal
    closing_status: PanelStatus
    applied_rate: Decimal
    initial_state: InitialState
    periods: tuple[BillingPeriod, ...] = ()
    adjustment_cents: int = 0
    event_count: int = 0
    anomalies: tuple[Anomaly, ...] = ()
    panel_id: UUID | None = None


@dataclass(frozen=True)
class PanelInfo:
    id: UUID
    code: str
    municipality_ref: str
    status: PanelStatus
    base_rate: Decimal
    location: str | None = None

    @classmethod
    def from_model(cls, model: PanelModel) -> PanelInfo:
        return cls(
            id=model.id,
            code=model.code,
            municipality_ref=model.municipality_ref,
            status=PanelStatus(model.status),
            base_rate=model.base_rate,
            location=model.location,
        )


@dataclass(frozen=True)
class BillingRecordInfo:
    """Read-side snapshot of a MonthlyBillingRecord."""

    panel_id: UUID
    month_key: str
    billable_days: int
    amount: Decimal
    closing_status: PanelStatus
    applied_rate: Decimal | None
    panel_code: str
    municipality_label: str
    schema_version: int = 1

    def to_prior_state(self) -> PriorMonthState:
        return PriorMonthState(
            month_key=self.month_key,
            closing_status=self.closing_status,
            applied_rate=self.applied_rate,
        )

    @classmethod
    def from_model(cls, model: MonthlyBillingRecordModel) -> BillingRecordInfo:
        return cls(
            panel_id=model.panel_id,
            month_key=model.month_key,
            billable_days=model.billable_days,
            amount=model.amount,
            closing_status=PanelStatus(model.closing_status),
            applied_rate=model.applied_rate,
            panel_code=model.panel_code,
            municipality_label=model.municipality_label,
            schema_version=model.schema_version,
        )


@dataclass(frozen=True)
class MonthlySummaryInfo:
    """Read-side snapshot of a MonthlySummary."""

    month_key: str
    total_amount: Decimal
    fully_billed_count: int
    partial_count: int
    billable_panel_count: int
    non_positive_count: int
    panel_count: int
    total_events: int
    is_locked: bool
    locked_at: datetime | None = None

    @classmethod
    def from_model(cls, model: MonthlySummaryModel) -> MonthlySummaryInfo:
        return cls(
            month_key=model.month_key,
            total_amount=model.total_amount,
            fully_billed_count=model.fully_billed_count,
            partial_count=model.partial_count,
            billable_panel_count=model.billable_panel_count,
            non_positive_count=model.non_positive_count,
            panel_count=model.panel_count,
            total_events=model.total_events,
            is_locked=model.is_locked,
            locked_at=model.locked_at,
        )


@dataclass(frozen=True)
class YearlyRateInfo:
    year: int
    amount: Decimal
    description: str | None = None

    @classmethod
    def from_model(cls, model: YearlyRateModel) -> YearlyRateInfo:
        return cls(year=model.year, amount=model.amount, description=model.description)


@dataclass(frozen=True)
class EventInfo:
    """Read-side snapshot of a PanelEvent for operator listings."""

    id: UUID
    panel_id: UUID
    action: EventAction
    month_key: str
    effective_date_local: str
    day_of_month: int
    amount: Decimal | None = None
    rate: Decimal | None = None
    reason: str | None = None
    is_deleted: bool = False
    snapshot_after: dict = field(default_factory=dict)

    @classmethod
    def from_model(cls, model: PanelEventModel) -> EventInfo:
        return cls(
            id=model.id,
            panel_id=model.panel_id,
            action=EventAction(model.action),
            month_key=model.month_key,
            effective_date_local=model.effective_date_local,
            day_of_month=model.day_of_month,
            amount=model.amount,
            rate=model.rate,
            reason=model.reason,
            is_deleted=bool(model.is_deleted),
            snapshot_after=dict(model.snapshot_after or {}),
        )


@dataclass(frozen=True)
class PanelRemoval:
    """What deleting a panel removed, and the months whose summaries it touched."""

    panel_id: UUID
    code: str
    events_deleted: int
    records_deleted: int
    affected_months: tuple[str, ...] = ()
    # One flag per affected month, set once the summaries are recomputed
    summaries_recomputed: tuple[bool, ...] = ()


@dataclass(frozen=True)
class MonthDeletion:
    month_key: str
    records_deleted: int
    events_deleted: int
