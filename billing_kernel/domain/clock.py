"""
Clock -- the billing calendar's notion of "now".

Which month is current decides whether a recalculation may overwrite a
panel's live status and which month close-month locks.  Month boundaries
are local to the operator's timezone: at 00:30 on 1 April in Madrid the
current month is already 2025-04 although UTC still reads March.  A clock
therefore carries the billing timezone and ``now()`` answers in it.

Services receive a Clock by constructor injection and never call
``datetime.now()`` themselves.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone, tzinfo

from billing_kernel.domain.calendar import current_month_key


class Clock(ABC):
    """
    Guarantees:
        - ``now()`` is timezone-aware and expressed in ``tz``.
        - ``month_key()`` is the billing month containing ``now()``.
    """

    def __init__(self, tz: tzinfo | None = None):
        self.tz = tz or timezone.utc

    @abstractmethod
    def now(self) -> datetime:
        ...

    def month_key(self) -> str:
        return current_month_key(self.now())


class SystemClock(Clock):
    """Wall-clock time in the billing timezone."""

    def now(self) -> datetime:
        return datetime.now(self.tz)


class DeterministicClock(Clock):
    """
    Test clock pinned to one instant (2025-03-15 12:00 UTC by default).

    The instant is fixed; ``tz`` only changes how it is expressed, and so
    which billing month it falls in.
    """

    def __init__(self, fixed_time: datetime | None = None, tz: tzinfo | None = None):
        super().__init__(tz)
        self._fixed_time = fixed_time or datetime(2025, 3, 15, 12, 0, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._fixed_time.astimezone(self.tz)

    def advance(self, seconds: int = 1) -> None:
        self._fixed_time += timedelta(seconds=seconds)
