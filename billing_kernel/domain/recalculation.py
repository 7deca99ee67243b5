"""
Recalculation -- pure monthly billing state machine.

Responsibility:
    Given a panel's closing state from the previous month and the month's
    event log, derive the month's billable-day count, amount, closing status
    and applied rate.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Reading events and
    prior records, logging anomalies and persisting the result belong to
    RecalculationService.

Invariants enforced:
    - Billable days always land in [0, 30].
    - Absent events, the closing status equals the opening status.
    - The applied rate is inherited within a year and forced to the target
      year's standard rate when the prior record is from another year.
    - Adjustments move the amount only; they never touch periods or status.
    - Deterministic: the same inputs always yield an equal result.

Algorithm:
    1. establish_initial_state()   prior record -> status + rate
    2. order_events()              drop deleted, sort chronologically
    3. build_periods()             activation/deactivation state machine
    4. aggregate()                 days * rate / 30 + adjustments, in cents
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Sequence

from billing_kernel.domain.calendar import year_of
from billing_kernel.domain.dtos import (
    Anomaly,
    BillingPeriod,
    EventFact,
    InitialState,
    PeriodConstruction,
    PriorMonthState,
    RecalculationResult,
)
from billing_kernel.domain.money import (
    BILLING_MONTH_DAYS,
    amount_for_days_cents,
    from_cents,
    to_cents,
)
from billing_kernel.domain.values import (
    ACTIVATION_ACTIONS,
    AMOUNT_ACTIONS,
    DEACTIVATION_ACTIONS,
    EventAction,
    PanelStatus,
)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def establish_initial_state(
    month_key: str,
    prior: PriorMonthState | None,
    standard_rate: Decimal,
) -> InitialState:
    """
    Opening status and rate for ``month_key``.

    Args:
        month_key: Target month.
        prior: Closing state of the previous month, or None when the panel
            has no history.
        standard_rate: Standard rate of the target year, already resolved.
    """
    if prior is None:
        return InitialState(
            status=PanelStatus.ACTIVE,
            applied_rate=standard_rate,
            rate_source="standard",
        )

    status = PanelStatus(prior.closing_status)
    if year_of(prior.month_key) != year_of(month_key):
        return InitialState(status=status, applied_rate=standard_rate, rate_source="rollover")
    if prior.applied_rate is None:
        return InitialState(status=status, applied_rate=standard_rate, rate_source="fallback")
    return InitialState(status=status, applied_rate=prior.applied_rate, rate_source="inherited")


def _as_aware(value: datetime) -> datetime:
    # Some backends hand timestamps back without tzinfo; they are stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _instant_of(fact: EventFact) -> datetime | None:
    if fact.effective_at is not None:
        return _as_aware(fact.effective_at)
    local = (fact.effective_date_local or "")[:10]
    try:
        parsed = datetime.strptime(local, "%Y-%m-%d")
    except ValueError:
        return None
    return parsed.replace(tzinfo=timezone.utc)


def _sort_key(fact: EventFact) -> tuple[int, datetime, datetime]:
    instant = _instant_of(fact)
    recorded = _as_aware(fact.recorded_at) if fact.recorded_at is not None else _EPOCH
    if instant is None:
        return (0, _EPOCH, recorded)
    return (1, instant, recorded)


def order_events(events: Iterable[EventFact]) -> list[EventFact]:
    """
    Drop soft-deleted facts and sort the rest chronologically.

    Ordering is by ``effective_at`` when known, otherwise by the parsed
    local date.  Facts whose date cannot be parsed sort first.  Ties keep
    ``recorded_at`` order and, failing that, input order.
    """
    live = [fact for fact in events if not fact.is_deleted]
    return sorted(live, key=_sort_key)


def opening_status(initial: InitialState, events: Sequence[EventFact]) -> PanelStatus:
    """
    Status the state machine starts from.

    A panel whose INITIAL_INTAKE falls in this month did not exist before
    it, so it starts out not billing whatever the prior record says.
    """
    if any(fact.action == EventAction.INITIAL_INTAKE for fact in events):
        return PanelStatus.RETIRED
    return initial.status


def build_periods(
    status: PanelStatus,
    applied_rate: Decimal,
    events: Sequence[EventFact],
) -> PeriodConstruction:
    """
    Run the activation/deactivation state machine over ordered events.

    The deactivation day is billable: a removal on day 9 closes ``[open, 9]``
    and billing resumes only with a later activation.  Redundant transitions
    leave the status alone and are reported as anomalies.
    """
    if not events:
        periods: tuple[BillingPeriod, ...] = ()
        if status == PanelStatus.ACTIVE:
            periods = (BillingPeriod(1, BILLING_MONTH_DAYS),)
        return PeriodConstruction(
            periods=periods,
            closing_status=status,
            applied_rate=applied_rate,
            adjustment_cents=0,
        )

    collected: list[BillingPeriod] = []
    anomalies: list[Anomaly] = []
    adjustment_cents = 0
    open_start = 1

    for fact in events:
        day = fact.day_of_month
        action = fact.action

        if action in ACTIVATION_ACTIONS:
            if status != PanelStatus.ACTIVE:
                status = PanelStatus.ACTIVE
                open_start = day
            else:
                anomalies.append(
                    Anomaly("redundant_activation", fact.event_id, action, day, status)
                )

        elif action in DEACTIVATION_ACTIONS:
            if status == PanelStatus.ACTIVE:
                if open_start <= day:
                    collected.append(BillingPeriod(open_start, day))
            else:
                anomalies.append(
                    Anomaly("redundant_deactivation", fact.event_id, action, day, status)
                )
            status = DEACTIVATION_ACTIONS[action]
            open_start = day + 1

        elif action == EventAction.RATE_CHANGE:
            if fact.rate is not None:
                applied_rate = fact.rate

        elif action in AMOUNT_ACTIONS:
            if action == EventAction.INTERVENTION and status != PanelStatus.ACTIVE:
                anomalies.append(
                    Anomaly(
                        "intervention_on_inactive_panel",
                        fact.event_id,
                        action,
                        day,
                        status,
                    )
                )
            if fact.amount is not None:
                adjustment_cents += to_cents(fact.amount)

    if status == PanelStatus.ACTIVE and open_start <= BILLING_MONTH_DAYS:
        collected.append(BillingPeriod(open_start, BILLING_MONTH_DAYS))

    return PeriodConstruction(
        periods=tuple(collected),
        closing_status=status,
        applied_rate=applied_rate,
        adjustment_cents=adjustment_cents,
        anomalies=tuple(anomalies),
    )


def aggregate(construction: PeriodConstruction) -> tuple[int, Decimal]:
    """
    Billable days and final amount of a period construction.

    Returns:
        ``(billable_days, amount)`` with days clamped to [0, 30] and the
        amount rounded to cents.
    """
    days = sum(period.days for period in construction.periods)
    days = max(0, min(days, BILLING_MONTH_DAYS))
    cents = amount_for_days_cents(days, to_cents(construction.applied_rate))
    cents += construction.adjustment_cents
    return days, from_cents(cents)


def compute_month(
    month_key: str,
    prior: PriorMonthState | None,
    events: Iterable[EventFact],
    standard_rate: Decimal,
) -> RecalculationResult:
    """
    Full pure recalculation of one panel-month.

    Example:
        >>> compute_month("2025-03", None, [], Decimal("37.70")).amount
        Decimal('37.70')
    """
    initial = establish_initial_state(month_key, prior, standard_rate)
    ordered = order_events(events)
    status = opening_status(initial, ordered)
    construction = build_periods(status, initial.applied_rate, ordered)
    billable_days, amount = aggregate(construction)

    return RecalculationResult(
        month_key=month_key,
        billable_days=billable_days,
        amount=amount,
        closing_status=construction.closing_status,
        applied_rate=construction.applied_rate,
        initial_state=initial,
        periods=construction.periods,
        adjustment_cents=construction.adjustment_cents,
        event_count=len(ordered),
        anomalies=construction.anomalies,
    )
