"""
Module: billing_kernel.selectors.event_selector
Responsibility: Read access to the panel event log.
Architecture position: Kernel > Selectors.

events_for_month() returns soft-deleted rows too.  Filtering and ordering
happen in memory in the recalculation core so that the query stays a plain
equality lookup any store can serve.
"""

from uuid import UUID

from sqlalchemy import func, select

from billing_kernel.domain.dtos import EventFact, EventInfo
from billing_kernel.models.panel_event import PanelEvent
from billing_kernel.selectors.base import BaseSelector


class EventSelector(BaseSelector[PanelEvent]):
    """Queries over panel_events."""

    def events_for_month(self, panel_id: UUID, month_key: str) -> list[EventFact]:
        """All events of ``(panel_id, month_key)``, deleted or not, unordered."""
        return self._all_dtos(
            select(PanelEvent).where(
                PanelEvent.panel_id == panel_id,
                PanelEvent.month_key == month_key,
            ),
            EventFact.from_model,
        )

    def count_live_events(self, month_key: str) -> int:
        """Number of non-deleted events recorded for a month, across panels."""
        return self.session.execute(
            select(func.count(PanelEvent.id)).where(
                PanelEvent.month_key == month_key,
                PanelEvent.is_deleted.is_(False),
            )
        ).scalar_one()

    def get_event(self, event_id: UUID) -> EventInfo | None:
        return self._first_dto(
            select(PanelEvent).where(PanelEvent.id == event_id), EventInfo.from_model
        )

    def list_events(
        self,
        panel_id: UUID,
        month_key: str | None = None,
        include_deleted: bool = False,
    ) -> list[EventInfo]:
        """Events of a panel in recording order, for operator listings."""
        query = select(PanelEvent).where(PanelEvent.panel_id == panel_id)
        if month_key is not None:
            query = query.where(PanelEvent.month_key == month_key)
        if not include_deleted:
            query = query.where(PanelEvent.is_deleted.is_(False))
        return self._all_dtos(query.order_by(PanelEvent.recorded_at), EventInfo.from_model)
