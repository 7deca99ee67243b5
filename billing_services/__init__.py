"""
billing_services -- Package init and public API.

Responsibility:
    Transaction-owning orchestration over the billing kernel.  This is the
    only layer that opens sessions and commits.

Architecture position:
    Services -- stateful orchestration over the kernel.

    Dependency direction:
        billing_services/ -> billing_kernel/   (allowed)
        billing_kernel/   -> billing_services/ (FORBIDDEN)
"""

from billing_services.billing_orchestrator import BillingOrchestrator
from billing_services.month_close_orchestrator import MonthCloseOrchestrator

__all__ = [
    "BillingOrchestrator",
    "MonthCloseOrchestrator",
]
