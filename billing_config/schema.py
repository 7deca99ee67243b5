"""
BillingConfig schema.

Frozen dataclasses the loader parses the YAML configuration set into.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from zoneinfo import ZoneInfo


@dataclass(frozen=True)
class RegenerationSettings:
    """Tuning of bulk month regeneration."""

    batch_size: int = 50
    max_workers: int = 4
    retry_failed: bool = True


@dataclass(frozen=True)
class BillingConfig:
    """Runtime configuration of the billing engine."""

    config_id: str
    version: int
    database_url: str
    timezone: str
    regeneration: RegenerationSettings
    standard_rates: dict[int, Decimal] = field(default_factory=dict)
    checksum: str = ""

    def rate_for(self, year: int) -> Decimal | None:
        return self.standard_rates.get(year)

    @property
    def zone(self) -> ZoneInfo:
        """Billing timezone; decides which month is current."""
        return ZoneInfo(self.timezone)
