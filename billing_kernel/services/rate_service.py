"""
RateService -- standard monthly rate per year.

Responsibility:
    Point lookup of the standard rate used when a panel has no billing
    history and forced on every year rollover, plus the administrative
    writes that maintain the yearly_rates table.

Architecture position:
    Kernel > Services -- imperative shell.

Failure modes:
    - ConfigurationMissingError: no rate stored for the requested year.
      Callers must treat it as fatal; billing never proceeds on a guessed
      rate.
    - ValueError: non-positive rate on write.
"""

from decimal import Decimal
from typing import Mapping
from uuid import UUID

from sqlalchemy import select

from billing_kernel.db.types import round_money
from billing_kernel.domain.dtos import YearlyRateInfo
from billing_kernel.exceptions import ConfigurationMissingError
from billing_kernel.logging_config import get_logger
from billing_kernel.models.rate import YearlyRate
from billing_kernel.services.base import BaseService

logger = get_logger("services.rate")


class RateService(BaseService[YearlyRate]):
    """Reads and maintains the yearly standard rates."""

    def _get(self, year: int) -> YearlyRate | None:
        return self.session.execute(
            select(YearlyRate).where(YearlyRate.year == year)
        ).scalar_one_or_none()

    def standard_rate(self, year: int) -> Decimal:
        """
        Standard monthly rate for ``year``.

        Raises:
            ConfigurationMissingError: If no rate is configured for the year.
        """
        rate = self._get(year)
        if rate is None:
            logger.error("standard_rate_missing", extra={"year": year})
            raise ConfigurationMissingError(year)
        return rate.amount

    def set_standard_rate(
        self,
        year: int,
        amount: Decimal,
        actor_id: UUID,
        description: str | None = None,
    ) -> YearlyRateInfo:
        """
        Insert or replace the standard rate of ``year``.

        This does not re-price anything already billed; see
        MonthRegenerator.propagate_yearly_rate for that.
        """
        if isinstance(amount, float):
            raise TypeError("Rates must be Decimal, not float")
        amount = round_money(Decimal(amount))
        if amount <= 0:
            raise ValueError(f"Standard rate must be positive, got {amount}")

        rate = self._get(year)
        previous = rate.amount if rate is not None else None
        if rate is None:
            rate = YearlyRate(
                year=year,
                amount=amount,
                description=description,
                created_by_id=actor_id,
            )
            self.session.add(rate)
        else:
            rate.amount = amount
            if description is not None:
                rate.description = description
            rate.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "standard_rate_set",
            extra={
                "year": year,
                "amount": str(amount),
                "previous_amount": str(previous) if previous is not None else None,
            },
        )
        return YearlyRateInfo.from_model(rate)

    def seed_rates(self, rates: Mapping[int, Decimal], actor_id: UUID) -> list[int]:
        """
        Store configured rates for years that have none yet.

        Existing rows are left alone so that an operator's later change is
        never overwritten by the shipped configuration.

        Returns:
            Years that were inserted.
        """
        inserted: list[int] = []
        for year in sorted(rates):
            if self._get(year) is not None:
                continue
            self.set_standard_rate(year, rates[year], actor_id, description="seeded")
            inserted.append(year)

        logger.info("standard_rates_seeded", extra={"years": inserted})
        return inserted

    def list_rates(self) -> list[YearlyRateInfo]:
        rows = self.session.execute(select(YearlyRate).order_by(YearlyRate.year)).scalars()
        return [YearlyRateInfo.from_model(row) for row in rows]
