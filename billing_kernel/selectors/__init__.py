"""Selectors for the billing kernel (read side)."""

from billing_kernel.selectors.billing_selector import BillingSelector
from billing_kernel.selectors.event_selector import EventSelector
from billing_kernel.selectors.panel_selector import PanelSelector

__all__ = [
    "BillingSelector",
    "EventSelector",
    "PanelSelector",
]
