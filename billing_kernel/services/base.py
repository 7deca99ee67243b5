"""
BaseService -- common shell of the kernel's write services.

Every service works inside the caller's transaction: it flushes, never
commits or rolls back.  BillingOrchestrator, MonthCloseOrchestrator and
MonthRegenerator own the transaction boundaries.

Services share two things: the billing clock (stamping and "current month"
decisions) and the month-lock guard that every write to a month's event
log or billing rows passes through.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from billing_kernel.db.base import Base
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.exceptions import MonthLockedError
from billing_kernel.models.billing import MonthlySummary

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self._clock = clock or SystemClock()

    def _month_is_locked(self, month_key: str) -> bool:
        return bool(
            self.session.execute(
                select(MonthlySummary.is_locked).where(MonthlySummary.month_key == month_key)
            ).scalar_one_or_none()
        )

    def _require_open_month(self, month_key: str, operation: str) -> None:
        """
        Raises:
            MonthLockedError: If the month's summary exists and is locked.
        """
        if self._month_is_locked(month_key):
            raise MonthLockedError(month_key, operation)
