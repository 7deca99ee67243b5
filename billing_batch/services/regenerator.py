"""
MonthRegenerator -- bulk recalculation of a month across panels.

Contract:
    Recalculates many panels for one month in fixed-size batches with bounded
    concurrency, isolates per-panel failures, retries the failures once, and
    recomputes the month summary a single time at the end.

Architecture: billing_batch/services.  Imports from billing_batch.domain,
    billing_services and kernel selectors/services.

Invariants enforced:
    - Bounded concurrency: at most ``max_workers`` recalculations in flight,
      and never more than ``batch_size`` submitted at once.
    - Isolation: every panel runs in its own session and transaction; one
      panel's failure never aborts the run.
    - Structured outcome: callers get explicit succeeded / failed lists,
      never an exception for per-panel failures.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from typing import Iterable, Sequence
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from billing_kernel.db.engine import session_scope
from billing_kernel.domain.calendar import format_month_key, parse_month_key, previous_month_key
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.dtos import YearlyRateInfo
from billing_kernel.domain.values import SYSTEM_ACTOR_ID
from billing_kernel.exceptions import (
    BillingKernelError,
    MonthAlreadyExistsError,
    MonthLockedError,
    SummaryNotFoundError,
)
from billing_kernel.logging_config import LogContext, get_logger
from billing_kernel.selectors.billing_selector import BillingSelector
from billing_kernel.selectors.panel_selector import PanelSelector
from billing_kernel.services.rate_service import RateService
from billing_kernel.services.summary_service import SummaryService
from billing_services.billing_orchestrator import BillingOrchestrator

from billing_batch.domain.types import (
    PanelFailure,
    RegenerationResult,
    RegenerationStatus,
)

logger = get_logger("batch.regenerator")

DEFAULT_BATCH_SIZE = 50
DEFAULT_MAX_WORKERS = 4


class MonthRegenerator:
    """Bulk month regeneration with a single retry pass.

    Contract:
        - ``regenerate_month()`` recalculates a set of panels (default: all).
        - ``create_next_month()`` opens a month and bills every panel in it.
        - ``resync_month()`` re-derives a month from the previous month.
        - ``propagate_yearly_rate()`` stores a rate and re-prices January.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_workers: int = DEFAULT_MAX_WORKERS,
        retry_failed: bool = True,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._batch_size = batch_size
        self._max_workers = max_workers
        self._retry_failed = retry_failed
        self._orchestrator = BillingOrchestrator(session_factory, self._clock)

    @classmethod
    def from_config(
        cls,
        session_factory: sessionmaker[Session],
        config,
        clock: Clock | None = None,
    ) -> MonthRegenerator:
        """
        Build from a ``billing_config.BillingConfig``.  Without an explicit
        clock, wall-clock time is read in the configured billing timezone.
        """
        settings = config.regeneration
        return cls(
            session_factory,
            clock=clock or SystemClock(config.zone),
            batch_size=settings.batch_size,
            max_workers=settings.max_workers,
            retry_failed=settings.retry_failed,
        )

    # -------------------------------------------------------------------------
    # Regeneration
    # -------------------------------------------------------------------------

    def regenerate_month(
        self,
        month_key: str,
        panel_ids: Iterable[UUID] | None = None,
        actor_id: UUID = SYSTEM_ACTOR_ID,
    ) -> RegenerationResult:
        """Recalculate ``month_key`` for ``panel_ids`` (default: every panel)."""
        parse_month_key(month_key)
        job_id = uuid4()
        start_time = time.monotonic()

        with LogContext.bind(job_id=str(job_id), month_key=month_key):
            if panel_ids is None:
                with session_scope(self._session_factory) as session:
                    panel_ids = PanelSelector(session).list_panel_ids()
            ids = list(dict.fromkeys(panel_ids))

            logger.info(
                "regeneration_started",
                extra={"total_panels": len(ids), "batch_size": self._batch_size},
            )

            succeeded: list[UUID] = []
            failures = self._run(ids, month_key, actor_id, job_id, succeeded)

            recovered = 0
            if failures and self._retry_failed:
                logger.info("regeneration_retry_started", extra={"failed": len(failures)})
                retry_ids = [failure.panel_id for failure in failures]
                failures = [
                    PanelFailure(f.panel_id, f.error_code, f.error_message, retry_count=1)
                    for f in self._run(retry_ids, month_key, actor_id, job_id, succeeded)
                ]
                recovered = len(retry_ids) - len(failures)

            summary_recomputed = self._orchestrator.cascade(month_key) if ids else True

            if not failures:
                status = RegenerationStatus.COMPLETED
            elif not succeeded:
                status = RegenerationStatus.FAILED
            else:
                status = RegenerationStatus.PARTIALLY_COMPLETED

            duration_ms = int((time.monotonic() - start_time) * 1000)
            result = RegenerationResult(
                job_id=job_id,
                month_key=month_key,
                status=status,
                total=len(ids),
                succeeded=tuple(succeeded),
                failed=tuple(failures),
                recovered_on_retry=recovered,
                summary_recomputed=summary_recomputed,
                duration_ms=duration_ms,
            )

            log = logger.warning if failures else logger.info
            log(
                "regeneration_completed",
                extra={
                    "status": status.value,
                    "total_panels": result.total,
                    "succeeded": result.succeeded_count,
                    "failed": result.failed_count,
                    "recovered_on_retry": recovered,
                    "duration_ms": duration_ms,
                },
            )
        return result

    def _run(
        self,
        panel_ids: Sequence[UUID],
        month_key: str,
        actor_id: UUID,
        job_id: UUID,
        succeeded: list[UUID],
    ) -> list[PanelFailure]:
        failures: list[PanelFailure] = []
        batches = [
            panel_ids[i:i + self._batch_size]
            for i in range(0, len(panel_ids), self._batch_size)
        ]

        def collect(outcomes: Iterable[PanelFailure | None], batch: Sequence[UUID]) -> None:
            batch_failed = 0
            for panel_id, failure in zip(batch, outcomes):
                if failure is None:
                    succeeded.append(panel_id)
                else:
                    failures.append(failure)
                    batch_failed += 1
            if batch_failed:
                logger.warning(
                    "regeneration_batch_failures",
                    extra={"batch_size": len(batch), "failed": batch_failed},
                )

        def process(panel_id: UUID) -> PanelFailure | None:
            with LogContext.bind(job_id=str(job_id), month_key=month_key):
                return self._process(panel_id, month_key, actor_id)

        if self._max_workers <= 1:
            for batch in batches:
                collect([process(panel_id) for panel_id in batch], batch)
            return failures

        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            for batch in batches:
                collect(list(pool.map(process, batch)), batch)
        return failures

    def _process(self, panel_id: UUID, month_key: str, actor_id: UUID) -> PanelFailure | None:
        try:
            self._orchestrator.recalculate_month(panel_id, month_key, actor_id, cascade=False)
        except BillingKernelError as exc:
            logger.warning(
                "panel_regeneration_failed",
                extra={"panel_id": str(panel_id), "error_code": exc.code},
            )
            return PanelFailure(panel_id, exc.code, str(exc))
        except Exception as exc:
            logger.error(
                "panel_regeneration_failed",
                extra={"panel_id": str(panel_id), "error_code": "UNHANDLED_EXCEPTION"},
                exc_info=True,
            )
            return PanelFailure(panel_id, "UNHANDLED_EXCEPTION", str(exc))
        return None

    # -------------------------------------------------------------------------
    # Month lifecycle
    # -------------------------------------------------------------------------

    def create_next_month(
        self,
        month_key: str,
        actor_id: UUID = SYSTEM_ACTOR_ID,
    ) -> RegenerationResult:
        """
        Open ``month_key`` and bill every panel in it.

        Raises:
            MonthAlreadyExistsError: The month already has a summary.
            SummaryNotFoundError: The previous month has none.
        """
        previous = previous_month_key(month_key)
        with session_scope(self._session_factory) as session:
            billing = BillingSelector(session)
            if billing.summary_exists(month_key):
                raise MonthAlreadyExistsError(month_key)
            if not billing.summary_exists(previous):
                raise SummaryNotFoundError(previous)
            SummaryService(session, self._clock).ensure_summary(month_key, actor_id)

        logger.info(
            "month_opened",
            extra={"month_key": month_key, "previous_month_key": previous},
        )
        return self.regenerate_month(month_key, actor_id=actor_id)

    def resync_month(
        self,
        month_key: str,
        actor_id: UUID = SYSTEM_ACTOR_ID,
    ) -> RegenerationResult:
        """
        Re-derive every panel already billed in ``month_key`` from the
        (possibly corrected) previous month.

        Raises:
            SummaryNotFoundError: The month has no summary.
            MonthLockedError: The month is locked.
        """
        with session_scope(self._session_factory) as session:
            billing = BillingSelector(session)
            summary = billing.get_summary(month_key)
            if summary is None:
                raise SummaryNotFoundError(month_key)
            if summary.is_locked:
                raise MonthLockedError(month_key, "resync")
            panel_ids = billing.panel_ids_for_month(month_key)

        logger.info(
            "month_resync_requested",
            extra={
                "month_key": month_key,
                "previous_month_key": previous_month_key(month_key),
                "total_panels": len(panel_ids),
            },
        )
        return self.regenerate_month(month_key, panel_ids, actor_id)

    def propagate_yearly_rate(
        self,
        year: int,
        amount: Decimal,
        actor_id: UUID,
        description: str | None = None,
    ) -> tuple[YearlyRateInfo, RegenerationResult]:
        """
        Store the standard rate of ``year`` and re-price its January.

        January is the month where every panel picks up the new year's
        standard rate, so regenerating it moves the change into billing.
        Later months inherit it through the normal recalculation chain.
        """
        january = format_month_key(year, 1)
        with session_scope(self._session_factory) as session:
            rate = RateService(session).set_standard_rate(year, amount, actor_id, description)
            panel_ids = BillingSelector(session).panel_ids_for_month(january)

        logger.info(
            "yearly_rate_propagating",
            extra={"year": year, "amount": rate.amount, "total_panels": len(panel_ids)},
        )
        return rate, self.regenerate_month(january, panel_ids, actor_id)
