"""
billing_batch.domain -- Pure types for bulk regeneration.

ZERO I/O.  All types are frozen dataclasses.
"""

from billing_batch.domain.types import (
    PanelFailure,
    RegenerationResult,
    RegenerationStatus,
)

__all__ = [
    "PanelFailure",
    "RegenerationResult",
    "RegenerationStatus",
]
