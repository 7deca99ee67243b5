"""Kernel services (write side).  Every service flushes; none commits."""

from billing_kernel.services.panel_event_service import PanelEventService
from billing_kernel.services.panel_service import PanelService
from billing_kernel.services.rate_service import RateService
from billing_kernel.services.recalculation_service import RecalculationService
from billing_kernel.services.summary_service import SummaryService

__all__ = [
    "PanelEventService",
    "PanelService",
    "RateService",
    "RecalculationService",
    "SummaryService",
]
