"""Domain models for the billing kernel."""

from billing_kernel.models.billing import MonthlyBillingRecord, MonthlySummary
from billing_kernel.models.panel import Municipality, Panel
from billing_kernel.models.panel_event import PanelEvent
from billing_kernel.models.rate import YearlyRate

__all__ = [
    "Municipality",
    "Panel",
    "PanelEvent",
    "MonthlyBillingRecord",
    "MonthlySummary",
    "YearlyRate",
]
