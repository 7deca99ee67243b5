"""
Module: billing_kernel.models.panel
Responsibility: ORM persistence for leasable advertising panels and the
    municipalities they are leased to.
Architecture position: Kernel > Models.  May import from db/base.py,
    db/types.py and domain/values.py only.

Invariants enforced:
    - Panel.code is unique (uq_panel_code).
    - Panel.status is a live mirror; only recalculation of the current or a
      future month overwrites it.  Historical months never touch it.

Failure modes:
    - PanelNotFoundError (raised by services) when a referenced panel is
      absent.
    - PanelCodeExistsError (raised by PanelService) on duplicate intake.
"""

from decimal import Decimal

from sqlalchemy import Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TrackedBase
from billing_kernel.domain.values import PanelStatus


class Municipality(TrackedBase):
    """
    A municipality that leases panels.

    Supplies the human label copied onto billing records.  Panels reference
    it by ``code`` rather than by foreign key so that imported panels can
    name a municipality that has not been registered yet.
    """

    __tablename__ = "municipalities"

    __table_args__ = (
        UniqueConstraint("code", name="uq_municipality_code"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    def __repr__(self) -> str:
        return f"<Municipality {self.code}: {self.name}>"


class Panel(TrackedBase):
    """
    A physical advertising panel.

    Contract:
        Created once at intake (together with its INITIAL_INTAKE event).
        ``id`` never changes; billing records and events key on it.

    Guarantees:
        - code is unique.
        - status is one of PanelStatus.
    """

    __tablename__ = "panels"

    __table_args__ = (
        UniqueConstraint("code", name="uq_panel_code"),
        Index("idx_panel_municipality", "municipality_ref"),
        Index("idx_panel_status", "status"),
    )

    # Human code printed on the unit (e.g., "MAD-0042")
    code: Mapped[str] = mapped_column(String(50), nullable=False)

    # Municipality code, or a free-form label for unregistered ones
    municipality_ref: Mapped[str] = mapped_column(String(100), nullable=False)

    # Live status mirror
    status: Mapped[PanelStatus] = mapped_column(
        String(20),
        default=PanelStatus.ACTIVE.value,
        nullable=False,
    )

    # Monthly rate agreed at intake
    base_rate: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)

    location: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return f"<Panel {self.code}: {self.status}>"
