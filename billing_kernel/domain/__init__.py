"""
Pure domain layer.

This module contains pure data transfer objects and domain logic
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All domain objects are immutable and deterministic.
"""

from billing_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from billing_kernel.domain.dtos import (
    Anomaly,
    BillingPeriod,
    BillingRecordInfo,
    EventFact,
    EventInfo,
    InitialState,
    MonthDeletion,
    MonthlySummaryInfo,
    PanelInfo,
    PanelRemoval,
    PeriodConstruction,
    PriorMonthState,
    RecalculationResult,
    YearlyRateInfo,
)
from billing_kernel.domain.recalculation import (
    aggregate,
    build_periods,
    compute_month,
    establish_initial_state,
    opening_status,
    order_events,
)
from billing_kernel.domain.values import (
    SCHEMA_VERSION,
    SYSTEM_ACTOR_ID,
    EventAction,
    InterventionKind,
    PanelStatus,
)

__all__ = [
    # Time
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # Values
    "EventAction",
    "InterventionKind",
    "PanelStatus",
    "SCHEMA_VERSION",
    "SYSTEM_ACTOR_ID",
    # DTOs
    "Anomaly",
    "BillingPeriod",
    "BillingRecordInfo",
    "EventFact",
    "EventInfo",
    "InitialState",
    "MonthDeletion",
    "MonthlySummaryInfo",
    "PanelInfo",
    "PanelRemoval",
    "PeriodConstruction",
    "PriorMonthState",
    "RecalculationResult",
    "YearlyRateInfo",
    # Recalculation
    "aggregate",
    "build_periods",
    "compute_month",
    "establish_initial_state",
    "opening_status",
    "order_events",
]
