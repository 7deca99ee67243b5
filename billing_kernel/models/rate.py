"""
Module: billing_kernel.models.rate
Responsibility: ORM persistence for the standard monthly rate of each year.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One rate per year (uq_yearly_rate_year).
    - amount > 0 (ck_yearly_rate_positive).
"""

from decimal import Decimal

from sqlalchemy import CheckConstraint, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TrackedBase


class YearlyRate(TrackedBase):
    """Standard monthly rate for a calendar year."""

    __tablename__ = "yearly_rates"

    __table_args__ = (
        UniqueConstraint("year", name="uq_yearly_rate_year"),
        CheckConstraint("amount > 0", name="ck_yearly_rate_positive"),
    )

    year: Mapped[int] = mapped_column(Integer, nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)

    description: Mapped[str | None] = mapped_column(String(200), nullable=True)

    def __repr__(self) -> str:
        return f"<YearlyRate {self.year}: {self.amount}>"
