"""
Module: billing_kernel.selectors.panel_selector
Responsibility: Read access to panels and municipality labels.
Architecture position: Kernel > Selectors.
"""

from uuid import UUID

from sqlalchemy import select

from billing_kernel.domain.dtos import PanelInfo
from billing_kernel.models.panel import Municipality, Panel
from billing_kernel.selectors.base import BaseSelector


class PanelSelector(BaseSelector[Panel]):
    """Queries over panels and municipalities."""

    def get_panel(self, panel_id: UUID) -> PanelInfo | None:
        return self._first_dto(select(Panel).where(Panel.id == panel_id), PanelInfo.from_model)

    def get_by_code(self, code: str) -> PanelInfo | None:
        return self._first_dto(select(Panel).where(Panel.code == code), PanelInfo.from_model)

    def list_panel_ids(self) -> list[UUID]:
        """Every panel, ordered by code."""
        return list(self.session.execute(select(Panel.id).order_by(Panel.code)).scalars())

    def municipality_label(self, municipality_ref: str) -> str:
        """Registered name of a municipality, or the reference itself."""
        name = self.session.execute(
            select(Municipality.name).where(Municipality.code == municipality_ref)
        ).scalar_one_or_none()
        return name or municipality_ref
