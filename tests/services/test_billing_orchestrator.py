"""
Tests for BillingOrchestrator: committed recalculation, cascade isolation
and the admin actions that end with a recalculation.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from billing_kernel.db.engine import session_scope
from billing_kernel.domain.values import EventAction, PanelStatus
from billing_kernel.exceptions import (
    EventNotFoundError,
    MonthLockedError,
    PanelCodeMismatchError,
    PanelNotFoundError,
    TransientStoreError,
)
from billing_kernel.models.panel import Panel
from billing_kernel.selectors.billing_selector import BillingSelector
from billing_kernel.selectors.event_selector import EventSelector
from billing_kernel.services.recalculation_service import RecalculationService
from billing_kernel.services.summary_service import SummaryService
from billing_services import MonthCloseOrchestrator

ACTOR_ID = uuid4()


def read_record(session_factory, panel_id, month_key):
    with session_scope(session_factory) as session:
        return BillingSelector(session).get_record(panel_id, month_key)


def read_summary(session_factory, month_key):
    with session_scope(session_factory) as session:
        return BillingSelector(session).get_summary(month_key)


def live_status(session_factory, panel_id) -> str:
    with session_scope(session_factory) as session:
        return session.get(Panel, panel_id).status


class TestCreatePanel:

    def test_intake_month_is_billed_and_summarised(self, session_factory, create_panel):
        panel, result = create_panel("2025-03-05")

        assert result.billable_days == 26
        assert result.amount == Decimal("32.67")

        record = read_record(session_factory, panel.id, "2025-03")
        assert record.billable_days == 26
        assert record.amount == Decimal("32.67")

        summary = read_summary(session_factory, "2025-03")
        assert summary.panel_count == 1
        assert summary.total_amount == Decimal("32.67")
        assert summary.total_events == 1


class TestRecordEvent:

    def test_event_triggers_recalculation(self, session_factory, orchestrator, create_panel):
        panel, _ = create_panel("2025-03-01")

        orchestrator.record_event(panel.id, EventAction.REMOVAL, "2025-03-09", ACTOR_ID)
        _, result = orchestrator.record_event(
            panel.id, EventAction.REINSTALLATION, "2025-03-24", ACTOR_ID
        )

        assert result.billable_days == 16
        assert read_record(session_factory, panel.id, "2025-03").amount == Decimal("20.11")
        assert read_summary(session_factory, "2025-03").partial_count == 1

    def test_current_month_event_moves_live_status(self, session_factory, orchestrator, create_panel):
        panel, _ = create_panel("2025-03-01")

        orchestrator.record_event(panel.id, EventAction.RETIREMENT, "2025-03-20", ACTOR_ID)

        assert live_status(session_factory, panel.id) == PanelStatus.RETIRED.value

    def test_historical_event_leaves_live_status(self, session_factory, orchestrator, create_panel):
        panel, _ = create_panel("2025-01-01")

        _, result = orchestrator.record_event(panel.id, EventAction.REMOVAL, "2025-01-15", ACTOR_ID)

        assert result.closing_status == PanelStatus.REMOVED
        assert live_status(session_factory, panel.id) == PanelStatus.ACTIVE.value

    def test_repeated_idempotency_key_records_once(self, session_factory, orchestrator, create_panel):
        panel, _ = create_panel("2025-03-01")
        for _ in range(2):
            orchestrator.record_event(
                panel.id,
                EventAction.MANUAL_ADJUSTMENT,
                "2025-03-10",
                ACTOR_ID,
                amount=Decimal("-7.70"),
                idempotency_key="credit-note-17",
            )

        assert read_record(session_factory, panel.id, "2025-03").amount == Decimal("30.00")

    def test_locked_month_rejects_event(self, session_factory, clock, orchestrator, create_panel):
        panel, _ = create_panel("2025-02-01")
        MonthCloseOrchestrator(session_factory, clock).toggle_lock("2025-02", True, ACTOR_ID)

        with pytest.raises(MonthLockedError):
            orchestrator.record_event(panel.id, EventAction.REMOVAL, "2025-02-10", ACTOR_ID)

        with session_scope(session_factory) as session:
            assert len(EventSelector(session).list_events(panel.id, "2025-02")) == 1
        assert read_record(session_factory, panel.id, "2025-02").billable_days == 30


class TestDeleteEvent:

    def test_delete_restores_billing(self, session_factory, orchestrator, create_panel):
        panel, _ = create_panel("2025-03-01")
        removal, partial = orchestrator.record_event(
            panel.id, EventAction.REMOVAL, "2025-03-09", ACTOR_ID
        )
        assert partial.billable_days == 9

        deleted, restored = orchestrator.delete_event(removal.id, ACTOR_ID)

        assert deleted.is_deleted is True
        assert restored.billable_days == 30
        assert live_status(session_factory, panel.id) == PanelStatus.ACTIVE.value
        assert read_summary(session_factory, "2025-03").total_events == 1


class TestUpdateEvent:

    def test_same_month_correction(self, session_factory, orchestrator, create_panel):
        panel, _ = create_panel("2025-03-01")
        removal, _ = orchestrator.record_event(panel.id, EventAction.REMOVAL, "2025-03-09", ACTOR_ID)

        updated, results = orchestrator.update_event(
            removal.id, ACTOR_ID, effective_date_local="2025-03-19"
        )

        assert updated.day_of_month == 19
        assert [r.month_key for r in results] == ["2025-03"]
        assert results[0].billable_days == 19
        assert read_record(session_factory, panel.id, "2025-03").billable_days == 19

    def test_move_rebills_both_months(self, session_factory, orchestrator, create_panel):
        panel, _ = create_panel("2025-02-01")
        removal, _ = orchestrator.record_event(panel.id, EventAction.REMOVAL, "2025-02-27", ACTOR_ID)
        orchestrator.recalculate_month(panel.id, "2025-03")
        assert read_record(session_factory, panel.id, "2025-03").billable_days == 0

        _, results = orchestrator.update_event(
            removal.id, ACTOR_ID, effective_date_local="2025-03-05"
        )

        assert [r.month_key for r in results] == ["2025-02", "2025-03"]
        assert read_record(session_factory, panel.id, "2025-02").billable_days == 30
        assert read_record(session_factory, panel.id, "2025-03").billable_days == 5
        assert read_summary(session_factory, "2025-02").total_amount == Decimal("37.70")
        assert read_summary(session_factory, "2025-03").total_events == 1
        assert live_status(session_factory, panel.id) == PanelStatus.REMOVED.value

    def test_locked_target_month_changes_nothing(
        self, session_factory, clock, orchestrator, create_panel
    ):
        panel, _ = create_panel("2025-02-01")
        removal, _ = orchestrator.record_event(panel.id, EventAction.REMOVAL, "2025-03-09", ACTOR_ID)
        MonthCloseOrchestrator(session_factory, clock).toggle_lock("2025-02", True, ACTOR_ID)

        with pytest.raises(MonthLockedError):
            orchestrator.update_event(removal.id, ACTOR_ID, effective_date_local="2025-02-20")

        assert read_record(session_factory, panel.id, "2025-03").billable_days == 9
        assert read_record(session_factory, panel.id, "2025-02").billable_days == 30

    def test_unknown_event(self, orchestrator):
        with pytest.raises(EventNotFoundError):
            orchestrator.update_event(uuid4(), ACTOR_ID, reason="late fix")


class TestDeletePanel:

    def test_removal_recomputes_billed_months(self, session_factory, orchestrator, create_panel):
        doomed, _ = create_panel("2025-02-01", code="MAD-0666")
        kept, _ = create_panel("2025-02-01", code="MAD-0001")
        orchestrator.recalculate_month(doomed.id, "2025-03")
        assert read_summary(session_factory, "2025-02").panel_count == 2

        removal = orchestrator.delete_panel(doomed.id, "MAD-0666", ACTOR_ID)

        assert removal.affected_months == ("2025-02", "2025-03")
        assert removal.summaries_recomputed == (True, True)
        assert removal.events_deleted == 1
        assert read_summary(session_factory, "2025-02").panel_count == 1
        assert read_summary(session_factory, "2025-03").panel_count == 0
        assert read_record(session_factory, kept.id, "2025-02").billable_days == 30
        with session_scope(session_factory) as session:
            assert session.get(Panel, doomed.id) is None

    def test_wrong_code_keeps_panel(self, session_factory, orchestrator, create_panel):
        panel, _ = create_panel("2025-02-01", code="MAD-0666")

        with pytest.raises(PanelCodeMismatchError):
            orchestrator.delete_panel(panel.id, "MAD-0667", ACTOR_ID)

        assert read_record(session_factory, panel.id, "2025-02").billable_days == 30

    def test_failed_recompute_is_reported(self, orchestrator, create_panel, monkeypatch):
        panel, _ = create_panel("2025-02-01", code="MAD-0666")

        def boom(self, month_key, actor_id=None):
            raise RuntimeError("summary store unavailable")

        monkeypatch.setattr(SummaryService, "recompute_summary", boom)

        removal = orchestrator.delete_panel(panel.id, "MAD-0666", ACTOR_ID)
        assert removal.summaries_recomputed == (False,)
        assert removal.records_deleted == 1


class TestRecalculateMonth:

    def test_unknown_panel_propagates(self, orchestrator):
        with pytest.raises(PanelNotFoundError):
            orchestrator.recalculate_month(uuid4(), "2025-03")

    def test_cascade_failure_does_not_fail_recalculation(
        self, session_factory, orchestrator, create_panel, monkeypatch, captured_logs
    ):
        panel, _ = create_panel("2025-01-01")

        def boom(self, month_key, actor_id=None):
            raise RuntimeError("summary store unavailable")

        monkeypatch.setattr(SummaryService, "recompute_summary", boom)

        result = orchestrator.recalculate_month(panel.id, "2025-02")

        assert result.billable_days == 30
        assert read_record(session_factory, panel.id, "2025-02").billable_days == 30
        failures = [r for r in captured_logs() if r["message"] == "summary_cascade_failed"]
        assert len(failures) == 1
        assert failures[0]["error_code"] == "CASCADE_FAILURE"
        assert failures[0]["month_key"] == "2025-02"

    def test_cascade_reports_failure(self, orchestrator, monkeypatch):
        def boom(self, month_key, actor_id=None):
            raise RuntimeError("summary store unavailable")

        monkeypatch.setattr(SummaryService, "recompute_summary", boom)
        assert orchestrator.cascade("2025-02") is False

    def test_store_failure_is_transient(self, session_factory, orchestrator, create_panel, monkeypatch):
        panel, _ = create_panel("2025-01-01")

        def locked(self, panel_id, month_key, actor_id=None):
            raise OperationalError("UPDATE billing_monthly_panel", {}, Exception("database is locked"))

        monkeypatch.setattr(RecalculationService, "recalculate", locked)

        with pytest.raises(TransientStoreError) as exc_info:
            orchestrator.recalculate_month(panel.id, "2025-02")
        assert exc_info.value.code == "TRANSIENT_STORE_ERROR"
        assert exc_info.value.operation == "recalculate_month"
        assert read_record(session_factory, panel.id, "2025-02") is None

    def test_skip_cascade(self, session_factory, orchestrator, create_panel):
        panel, _ = create_panel("2025-01-01")
        orchestrator.recalculate_month(panel.id, "2025-02", cascade=False)
        assert read_summary(session_factory, "2025-02") is None
