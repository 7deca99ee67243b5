"""
Tests for billing JSON logs: scope fields, amount rendering and the
handler lifecycle of configure_logging/reset_logging.
"""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from billing_kernel.domain.values import PanelStatus
from billing_kernel.exceptions import ConfigurationMissingError, MonthLockedError
from billing_kernel.logging_config import (
    SCOPE_FIELDS,
    LogContext,
    configure_logging,
    get_logger,
    reset_logging,
)

ROOT = "billing_kernel"


@pytest.fixture(autouse=True)
def _isolated_logging():
    """Run each test against a bare billing logger, then put the suite's setup back."""
    root = logging.getLogger(ROOT)
    saved = (list(root.handlers), root.level, root.propagate)
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    root.handlers[:] = saved[0]
    root.setLevel(saved[1])
    root.propagate = saved[2]


@pytest.fixture
def emitted():
    """Configure billing logging into a buffer; returns a reader of parsed lines."""
    stream = StringIO()
    configure_logging(stream=stream, level=logging.DEBUG)

    def read() -> list[dict]:
        return [json.loads(line) for line in stream.getvalue().splitlines() if line]

    return read


def billing_handlers() -> list[logging.Handler]:
    return [
        h for h in logging.getLogger(ROOT).handlers
        if getattr(h, "_billing_handler", False)
    ]


class TestRecordLayout:

    def test_scope_fields_follow_envelope_in_fixed_order(self, emitted):
        with LogContext.bind(month_key="2025-03", panel_id="pnl-1", job_id="job-7"):
            get_logger("services.recalculation").info(
                "recalculation_completed", extra={"billable_days": 16}
            )

        record = emitted()[0]
        assert list(record)[:7] == [
            "ts", "level", "logger", "message", "job_id", "panel_id", "month_key",
        ]
        assert record["billable_days"] == 16
        assert record["logger"] == "billing_kernel.services.recalculation"

    def test_scope_field_given_as_extra_takes_scope_position(self, emitted):
        with LogContext.bind(job_id="job-7"):
            get_logger("batch").warning(
                "panel_regeneration_failed",
                extra={"error_code": "PANEL_NOT_FOUND", "panel_id": "pnl-9"},
            )

        record = emitted()[0]
        assert list(record)[4:6] == ["job_id", "panel_id"]
        assert record["panel_id"] == "pnl-9"

    def test_bound_scope_wins_over_extra(self, emitted):
        with LogContext.bind(month_key="2025-03"):
            get_logger("test").info("dup", extra={"month_key": "1999-01"})

        assert emitted()[0]["month_key"] == "2025-03"

    @pytest.mark.parametrize(
        "amount, rendered",
        [
            (Decimal("37.7"), "37.70"),
            (Decimal("40"), "40.00"),
            (Decimal("32.67"), "32.67"),
            (Decimal("1.2575"), "1.2575"),
            (Decimal("-5.5"), "-5.50"),
        ],
    )
    def test_amounts_render_with_cents(self, emitted, amount, rendered):
        get_logger("test").info("priced", extra={"amount": amount})
        assert emitted()[0]["amount"] == rendered

    def test_nested_amounts_and_statuses(self, emitted):
        get_logger("test").info(
            "snapshot",
            extra={"snapshot": {"rate": Decimal("39"), "status": PanelStatus.REMOVED}},
        )
        assert emitted()[0]["snapshot"] == {"rate": "39.00", "status": "REMOVED"}

    def test_status_rendered_by_value(self, emitted):
        panel_id = uuid4()
        get_logger("test").info(
            "closed", extra={"closing_status": PanelStatus.RETIRED, "record_id": panel_id}
        )
        record = emitted()[0]
        assert record["closing_status"] == "RETIRED"
        assert record["record_id"] == str(panel_id)

    def test_kernel_error_fields(self, emitted):
        try:
            raise MonthLockedError("2025-02", "record_event")
        except MonthLockedError:
            get_logger("test").error("locked", exc_info=True)

        record = emitted()[0]
        assert record["exc_type"] == "MonthLockedError"
        assert record["exc_code"] == "MONTH_LOCKED"
        assert record["exc_month_key"] == "2025-02"
        assert record["exc_operation"] == "record_event"
        assert "traceback" in record

    def test_missing_rate_error_fields(self, emitted):
        try:
            raise ConfigurationMissingError(2031)
        except ConfigurationMissingError:
            get_logger("test").error("no_rate", exc_info=True)

        record = emitted()[0]
        assert record["exc_code"] == "CONFIGURATION_MISSING"
        assert record["exc_year"] == 2031


class TestLogContext:

    def test_bind_nests_and_restores(self):
        with LogContext.bind(job_id="job-1", month_key="2025-02"):
            with LogContext.bind(panel_id=uuid4(), month_key="2025-03"):
                inner = LogContext.get_all()
            outer = LogContext.get_all()

        assert inner["job_id"] == "job-1"
        assert inner["month_key"] == "2025-03"
        assert outer == {"job_id": "job-1", "month_key": "2025-02"}
        assert LogContext.get_all() == {}

    def test_bind_skips_none(self):
        with LogContext.bind(event_id=None, month_key="2025-03"):
            assert LogContext.get_all() == {"month_key": "2025-03"}

    def test_get_all_follows_scope_order(self):
        LogContext.set(event_id="e", correlation_id="c", month_key="m")
        assert list(LogContext.get_all()) == [
            name for name in SCOPE_FIELDS if name in ("event_id", "correlation_id", "month_key")
        ]

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError, match="municipality"):
            LogContext.set(municipality="MAD")
        with pytest.raises(TypeError):
            with LogContext.bind(panel="x"):
                pass


class TestConfigureLogging:

    def test_second_call_keeps_one_billing_handler(self):
        configure_logging(stream=StringIO())
        configure_logging(stream=StringIO())
        assert len(billing_handlers()) == 1
        assert logging.getLogger(ROOT).propagate is False

    def test_default_level_drops_debug(self):
        stream = StringIO()
        configure_logging(stream=stream)
        get_logger("test").debug("hidden")
        get_logger("test").info("shown")
        assert [json.loads(line)["message"] for line in stream.getvalue().splitlines()] == ["shown"]

    def test_reset_leaves_foreign_handlers(self):
        foreign = logging.NullHandler()
        root = logging.getLogger(ROOT)
        root.addHandler(foreign)
        configure_logging(stream=StringIO())

        reset_logging()

        assert billing_handlers() == []
        assert foreign in root.handlers
        root.removeHandler(foreign)
