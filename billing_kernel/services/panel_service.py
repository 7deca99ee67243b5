"""
PanelService -- panel intake, removal and municipality registration.

Responsibility:
    Creates a panel together with the INITIAL_INTAKE event that makes it
    billable from its intake day, and maintains the municipality labels
    copied onto billing records.

Architecture position:
    Kernel > Services -- imperative shell.  Flush-only.

Failure modes:
    - PanelCodeExistsError: a panel with the same code exists.
    - ConfigurationMissingError: no standard rate for the intake year.
    - MonthLockedError: the intake month is locked, or a panel being
      removed is billed in a locked month.
    - PanelNotFoundError, PanelCodeMismatchError: panel removal.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from billing_kernel.domain.calendar import month_key_for_date_string, year_of
from billing_kernel.domain.clock import Clock
from billing_kernel.domain.dtos import EventInfo, PanelInfo, PanelRemoval
from billing_kernel.domain.values import EventAction, PanelStatus
from billing_kernel.exceptions import (
    PanelCodeExistsError,
    PanelCodeMismatchError,
    PanelNotFoundError,
)
from billing_kernel.logging_config import get_logger
from billing_kernel.models.billing import MonthlyBillingRecord
from billing_kernel.models.panel import Municipality, Panel
from billing_kernel.models.panel_event import PanelEvent
from billing_kernel.services.base import BaseService
from billing_kernel.services.panel_event_service import PanelEventService
from billing_kernel.services.rate_service import RateService

logger = get_logger("services.panel")


class PanelService(BaseService[Panel]):
    """Writes panels and municipalities."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self._rates = RateService(session)
        self._events = PanelEventService(session, self._clock)

    def create_panel(
        self,
        code: str,
        municipality_ref: str,
        intake_date: str,
        actor_id: UUID,
        base_rate: Decimal | None = None,
        location: str | None = None,
        effective_at: datetime | None = None,
    ) -> tuple[PanelInfo, EventInfo]:
        """
        Register a panel and its INITIAL_INTAKE event.

        Args:
            code: Unique human code.
            municipality_ref: Municipality code or label.
            intake_date: ``YYYY-MM-DD`` local date the panel starts billing.
            actor_id: Who registers the panel.
            base_rate: Agreed monthly rate; the intake year's standard rate
                when omitted.

        Returns:
            ``(panel, intake_event)``.
        """
        existing = self.session.execute(
            select(Panel.id).where(Panel.code == code)
        ).scalar_one_or_none()
        if existing is not None:
            raise PanelCodeExistsError(code)

        month_key = month_key_for_date_string(intake_date)
        standard_rate = self._rates.standard_rate(year_of(month_key))

        panel = Panel(
            code=code,
            municipality_ref=municipality_ref,
            status=PanelStatus.ACTIVE.value,
            base_rate=base_rate if base_rate is not None else standard_rate,
            location=location,
            created_by_id=actor_id,
        )
        self.session.add(panel)
        self.session.flush()

        intake = self._events.record_event(
            panel.id,
            EventAction.INITIAL_INTAKE,
            intake_date,
            actor_id,
            effective_at=effective_at,
            reason="intake",
            idempotency_key=f"{panel.id}:{EventAction.INITIAL_INTAKE.value}",
        )

        logger.info(
            "panel_created",
            extra={
                "panel_id": str(panel.id),
                "panel_code": code,
                "municipality_ref": municipality_ref,
                "intake_month": month_key,
            },
        )
        return PanelInfo.from_model(panel), intake

    def register_municipality(self, code: str, name: str, actor_id: UUID) -> None:
        """Insert or rename a municipality."""
        municipality = self.session.execute(
            select(Municipality).where(Municipality.code == code)
        ).scalar_one_or_none()
        if municipality is None:
            self.session.add(Municipality(code=code, name=name, created_by_id=actor_id))
        else:
            municipality.name = name
            municipality.updated_by_id = actor_id
        self.session.flush()
        logger.info("municipality_registered", extra={"code": code})

    def delete_panel(self, panel_id: UUID, confirm_code: str, actor_id: UUID) -> PanelRemoval:
        """
        Remove a panel, its whole event log and every billing record.

        Irreversible.  The caller confirms by repeating the panel's code.
        Month summaries are left stale; the caller recomputes
        ``affected_months`` once this transaction commits.

        Raises:
            PanelNotFoundError: No such panel.
            PanelCodeMismatchError: ``confirm_code`` is not the panel's code.
            MonthLockedError: The panel is billed in a locked month.
        """
        panel = self.session.get(Panel, panel_id)
        if panel is None:
            raise PanelNotFoundError(str(panel_id))
        if confirm_code != panel.code:
            logger.warning(
                "panel_delete_not_confirmed",
                extra={"panel_id": str(panel_id), "panel_code": panel.code},
            )
            raise PanelCodeMismatchError(panel.code, confirm_code)

        affected_months = tuple(
            self.session.execute(
                select(MonthlyBillingRecord.month_key)
                .where(MonthlyBillingRecord.panel_id == panel_id)
                .distinct()
                .order_by(MonthlyBillingRecord.month_key)
            ).scalars()
        )
        for month_key in affected_months:
            self._require_open_month(month_key, "delete_panel")

        records_deleted = self.session.execute(
            delete(MonthlyBillingRecord).where(MonthlyBillingRecord.panel_id == panel_id)
        ).rowcount
        events_deleted = self.session.execute(
            delete(PanelEvent).where(PanelEvent.panel_id == panel_id)
        ).rowcount
        code = panel.code
        self.session.delete(panel)
        self.session.flush()

        logger.info(
            "panel_deleted",
            extra={
                "panel_id": str(panel_id),
                "panel_code": code,
                "deleted_by": str(actor_id),
                "events_deleted": events_deleted,
                "records_deleted": records_deleted,
                "affected_months": list(affected_months),
            },
        )
        return PanelRemoval(
            panel_id=panel_id,
            code=code,
            events_deleted=events_deleted,
            records_deleted=records_deleted,
            affected_months=affected_months,
        )
