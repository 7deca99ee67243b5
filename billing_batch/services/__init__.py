"""billing_batch.services -- Regeneration services."""

from billing_batch.services.regenerator import MonthRegenerator

__all__ = ["MonthRegenerator"]
