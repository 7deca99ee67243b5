"""
billing_batch.domain.types -- Pure frozen dataclasses for bulk regeneration.

ZERO I/O.  Frozen dataclasses with enum status fields and tuples for
immutable collections.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class RegenerationStatus(str, Enum):
    """Run-level outcome."""

    COMPLETED = "completed"  # Every panel recalculated
    PARTIALLY_COMPLETED = "partially_completed"  # Some panels failed
    FAILED = "failed"  # No panel succeeded


@dataclass(frozen=True)
class PanelFailure:
    """A panel that still failed after the retry pass."""

    panel_id: UUID
    error_code: str
    error_message: str
    retry_count: int = 0


@dataclass(frozen=True)
class RegenerationResult:
    """Immutable result of regenerating one month.

    ``succeeded`` and ``failed`` are explicit so that partial success is
    always distinguishable from total failure.
    """

    job_id: UUID
    month_key: str
    status: RegenerationStatus
    total: int
    succeeded: tuple[UUID, ...] = ()
    failed: tuple[PanelFailure, ...] = ()
    recovered_on_retry: int = 0
    summary_recomputed: bool = True
    duration_ms: int = 0

    @property
    def succeeded_count(self) -> int:
        return len(self.succeeded)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    @property
    def failed_ids(self) -> tuple[UUID, ...]:
        return tuple(failure.panel_id for failure in self.failed)
