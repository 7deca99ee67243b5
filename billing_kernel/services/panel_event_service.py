"""
PanelEventService -- recording, correcting and soft-deleting panel events.

Responsibility:
    Appends facts to the panel event log after the checks an event must
    pass to be billable: the panel exists, the month is open, and the
    monetary fields match the action.  Corrections rewrite the event in
    place; deletion is logical only.

Architecture position:
    Kernel > Services -- imperative shell.  Flush-only.  BillingOrchestrator
    follows every call with a recalculation of the affected month.

Invariants enforced:
    - Idempotency: a repeated idempotency key for the same panel returns the
      already-recorded event instead of writing a second one.
    - Locked months accept no new events, corrections or deletions.  A
      correction that moves an event needs both months open.
    - Rates and amounts carry at most two decimals.
    - month_key and day_of_month always derive from effective_date_local.

Failure modes:
    - PanelNotFoundError, MonthLockedError, InvalidEventError,
      InvalidEventDateError, EventNotFoundError, EventAlreadyDeletedError.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select

from billing_kernel.domain.calendar import day_of_month, month_key_for_date_string
from billing_kernel.domain.dtos import EventInfo
from billing_kernel.domain.values import (
    ACTIVATION_ACTIONS,
    AMOUNT_ACTIONS,
    DEACTIVATION_ACTIONS,
    SCHEMA_VERSION,
    EventAction,
    InterventionKind,
    PanelStatus,
)
from billing_kernel.exceptions import (
    EventAlreadyDeletedError,
    EventNotFoundError,
    InvalidEventError,
    MonthLockedError,
    PanelNotFoundError,
)
from billing_kernel.logging_config import get_logger
from billing_kernel.models.panel import Panel
from billing_kernel.models.panel_event import PanelEvent
from billing_kernel.services.base import BaseService
from billing_kernel.utils.idempotency import generate_idempotency_key

logger = get_logger("services.panel_event")


def _whole_cents(value: Decimal | int) -> bool:
    """Rates and amounts are stored with two decimals; "37.70" passes, "37.705" does not."""
    value = Decimal(value)
    return value == value.quantize(Decimal("0.01"))


class PanelEventService(BaseService[PanelEvent]):
    """Writes to the panel event log."""

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
    ) -> EventInfo:
        """
        Append an event to a panel's log.

        Args:
            panel_id: Panel the event belongs to.
            action: EventAction (or its value).
            effective_date_local: ``YYYY-MM-DD`` in the panel's timezone.
            actor_id: Who records the event.
            effective_at: Precise instant, when known; used for ordering.
            amount: Signed amount, required non-zero for MANUAL_ADJUSTMENT
                and INTERVENTION.
            rate: New monthly rate, required positive for RATE_CHANGE.
            intervention_kind: Category of an INTERVENTION.
            reason: Free-text justification.
            idempotency_key: Caller-supplied key; generated when omitted.

        Returns:
            The recorded event, or the existing one for a repeated key.
        """
        try:
            action = EventAction(action)
        except ValueError:
            raise InvalidEventError(str(action), "unknown action") from None

        month_key = month_key_for_date_string(effective_date_local)
        day = day_of_month(effective_date_local)

        if idempotency_key is not None:
            existing = self._get_by_key(idempotency_key)
            if existing is not None:
                if existing.panel_id != panel_id:
                    raise InvalidEventError(
                        action.value,
                        f"idempotency key {idempotency_key} belongs to another panel",
                    )
                logger.info(
                    "event_already_recorded",
                    extra={"event_id": str(existing.id), "idempotency_key": idempotency_key},
                )
                return EventInfo.from_model(existing)

        panel = self.session.get(Panel, panel_id)
        if panel is None:
            raise PanelNotFoundError(str(panel_id))

        if self._month_is_locked(month_key):
            logger.warning(
                "event_rejected_month_locked",
                extra={"panel_id": str(panel_id), "month_key": month_key},
            )
            raise MonthLockedError(month_key, "record_event")

        amount, rate, kind = self._validate_fields(action, amount, rate, intervention_kind)

        if idempotency_key is None:
            idempotency_key = generate_idempotency_key(
                panel_id, action.value, effective_date_local, uuid4().hex
            )

        event = PanelEvent(
            panel_id=panel_id,
            action=action.value,
            month_key=month_key,
            effective_date_local=effective_date_local,
            effective_at=effective_at,
            day_of_month=day,
            amount=amount,
            rate=rate,
            intervention_kind=kind,
            reason=reason,
            snapshot_before=self._snapshot(panel),
            snapshot_after=self._snapshot_after(panel, action, amount, rate),
            is_deleted=False,
            idempotency_key=idempotency_key,
            recorded_at=self._clock.now(),
            schema_version=SCHEMA_VERSION,
            created_by_id=actor_id,
        )
        self.session.add(event)
        self.session.flush()

        logger.info(
            "event_recorded",
            extra={
                "event_id": str(event.id),
                "panel_id": str(panel_id),
                "action": action.value,
                "month_key": month_key,
                "day_of_month": day,
            },
        )
        return EventInfo.from_model(event)

    def soft_delete_event(self, event_id: UUID, actor_id: UUID) -> EventInfo:
        """
        Mark an event deleted.  The row stays in the log.

        Raises:
            EventNotFoundError: No such event.
            EventAlreadyDeletedError: The event is already deleted.
            MonthLockedError: The event's month is locked.
        """
        event = self.session.get(PanelEvent, event_id)
        if event is None:
            raise EventNotFoundError(str(event_id))
        if event.is_deleted:
            raise EventAlreadyDeletedError(str(event_id))
        self._require_open_month(event.month_key, "delete_event")

        event.soft_delete(actor_id, self._clock.now())
        self.session.flush()

        logger.info(
            "event_deleted",
            extra={
                "event_id": str(event_id),
                "panel_id": str(event.panel_id),
                "month_key": event.month_key,
            },
        )
        return EventInfo.from_model(event)

    def update_event(
        self,
        event_id: UUID,
        actor_id: UUID,
        *,
        effective_date_local: str | None = None,
        effective_at: datetime | None = None,
        amount: Decimal | None = None,
        rate: Decimal | None = None,
        intervention_kind: InterventionKind | str | None = None,
        reason: str | None = None,
    ) -> EventInfo:
        """
        Correct a recorded event in place.  The action cannot change.

        Only the given fields change.  A new ``effective_date_local``
        re-derives month_key and day_of_month, which may move the event
        into another month; both months must be open.

        Raises:
            EventNotFoundError: No such event.
            EventAlreadyDeletedError: Deleted events are not editable.
            InvalidEventError: Nothing to update, or the merged fields do
                not match the action.
            MonthLockedError: The current or the target month is locked.
        """
        event = self.session.get(PanelEvent, event_id)
        if event is None:
            raise EventNotFoundError(str(event_id))
        if event.is_deleted:
            raise EventAlreadyDeletedError(str(event_id))

        action = EventAction(event.action)
        changes = {
            "effective_date_local": effective_date_local,
            "effective_at": effective_at,
            "amount": amount,
            "rate": rate,
            "intervention_kind": intervention_kind,
            "reason": reason,
        }
        changed = sorted(name for name, value in changes.items() if value is not None)
        if not changed:
            raise InvalidEventError(action.value, "no fields to update")

        if amount is not None and action not in AMOUNT_ACTIONS:
            raise InvalidEventError(action.value, "action carries no amount")
        if rate is not None and action != EventAction.RATE_CHANGE:
            raise InvalidEventError(action.value, "action carries no rate")

        previous_month = event.month_key
        self._require_open_month(previous_month, "update_event")

        month_key, day = previous_month, event.day_of_month
        if effective_date_local is not None:
            month_key = month_key_for_date_string(effective_date_local)
            day = day_of_month(effective_date_local)
            if month_key != previous_month:
                self._require_open_month(month_key, "update_event")

        new_amount, new_rate, kind = self._validate_fields(
            action,
            amount if amount is not None else event.amount,
            rate if rate is not None else event.rate,
            intervention_kind if intervention_kind is not None else event.intervention_kind,
        )

        if effective_date_local is not None:
            event.effective_date_local = effective_date_local
        event.month_key = month_key
        event.day_of_month = day
        event.amount = new_amount
        event.rate = new_rate
        event.intervention_kind = kind
        if effective_at is not None:
            event.effective_at = effective_at
        if reason is not None:
            event.reason = reason

        panel = self.session.get(Panel, event.panel_id)
        if panel is not None:
            event.snapshot_after = self._snapshot_after(panel, action, new_amount, new_rate)
        event.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "event_updated",
            extra={
                "event_id": str(event_id),
                "panel_id": str(event.panel_id),
                "month_key": event.month_key,
                "previous_month_key": previous_month,
                "fields": changed,
            },
        )
        return EventInfo.from_model(event)

    def _get_by_key(self, idempotency_key: str) -> PanelEvent | None:
        return self.session.execute(
            select(PanelEvent).where(PanelEvent.idempotency_key == idempotency_key)
        ).scalar_one_or_none()

    @staticmethod
    def _validate_fields(
        action: EventAction,
        amount: Decimal | None,
        rate: Decimal | None,
        intervention_kind: InterventionKind | str | None,
    ) -> tuple[Decimal | None, Decimal | None, str | None]:
        if isinstance(amount, float) or isinstance(rate, float):
            raise TypeError("Event amounts must be Decimal, not float")

        if action == EventAction.RATE_CHANGE:
            if rate is None or Decimal(rate) <= 0:
                raise InvalidEventError(action.value, "rate must be positive")
            if not _whole_cents(rate):
                raise InvalidEventError(action.value, f"rate {rate} has more than 2 decimals")
            return None, Decimal(rate), None

        if action in AMOUNT_ACTIONS:
            if amount is None or Decimal(amount) == 0:
                raise InvalidEventError(action.value, "amount must be non-zero")
            if not _whole_cents(amount):
                raise InvalidEventError(action.value, f"amount {amount} has more than 2 decimals")
            kind = None
            if action == EventAction.INTERVENTION:
                try:
                    kind = InterventionKind(intervention_kind or InterventionKind.OTHER).value
                except ValueError:
                    raise InvalidEventError(
                        action.value, f"unknown intervention kind {intervention_kind}"
                    ) from None
            return Decimal(amount), None, kind

        return None, None, None

    @staticmethod
    def _snapshot(panel: Panel) -> dict:
        return {
            "code": panel.code,
            "status": PanelStatus(panel.status).value,
            "base_rate": str(panel.base_rate),
        }

    @classmethod
    def _snapshot_after(
        cls,
        panel: Panel,
        action: EventAction,
        amount: Decimal | None,
        rate: Decimal | None,
    ) -> dict:
        after = cls._snapshot(panel)
        if action in ACTIVATION_ACTIONS:
            after["status"] = PanelStatus.ACTIVE.value
        elif action in DEACTIVATION_ACTIONS:
            after["status"] = DEACTIVATION_ACTIONS[action].value
        elif action == EventAction.RATE_CHANGE:
            after["rate"] = str(rate)
        elif amount is not None:
            after["amount"] = str(amount)
        return after
