"""Unit tests for month-key arithmetic and day-of-month extraction."""

from datetime import datetime, timezone

import pytest

from billing_kernel.domain.calendar import (
    current_month_key,
    day_of_month,
    format_month_key,
    is_current_or_future,
    month_key_for_date_string,
    next_month_key,
    parse_month_key,
    previous_month_key,
    year_of,
)
from billing_kernel.exceptions import InvalidEventDateError, InvalidMonthKeyError


class TestParseMonthKey:

    def test_valid(self):
        assert parse_month_key("2025-03") == (2025, 3)

    @pytest.mark.parametrize("bad", ["2025-13", "2025-00", "2025-3", "25-03", "2025/03", "", None])
    def test_invalid(self, bad):
        with pytest.raises(InvalidMonthKeyError) as exc_info:
            parse_month_key(bad)
        assert exc_info.value.code == "INVALID_MONTH_KEY"

    def test_format_pads(self):
        assert format_month_key(2025, 1) == "2025-01"


class TestMonthNavigation:

    def test_previous_within_year(self):
        assert previous_month_key("2025-03") == "2025-02"

    def test_previous_wraps_year(self):
        assert previous_month_key("2025-01") == "2024-12"

    def test_next_within_year(self):
        assert next_month_key("2025-03") == "2025-04"

    def test_next_wraps_year(self):
        assert next_month_key("2024-12") == "2025-01"

    def test_year_of(self):
        assert year_of("2026-07") == 2026


class TestDateStrings:

    def test_month_key_for_date(self):
        assert month_key_for_date_string("2025-03-09") == "2025-03"

    def test_month_key_for_bad_date(self):
        with pytest.raises(InvalidEventDateError):
            month_key_for_date_string("09/03/2025")

    def test_day_of_month(self):
        assert day_of_month("2025-03-09") == 9

    def test_day_of_month_ignores_time_suffix(self):
        assert day_of_month("2025-03-24T23:30:00") == 24

    def test_day_31_is_returned_unclamped(self):
        assert day_of_month("2025-03-31") == 31

    @pytest.mark.parametrize(
        "bad",
        ["2025-03", "2025-03-xx", "2025-03-00", "2025-03-32", "", "2025-02-30", "2025-04-31"],
    )
    def test_day_of_month_invalid(self, bad):
        with pytest.raises(InvalidEventDateError) as exc_info:
            day_of_month(bad)
        assert exc_info.value.effective_date_local == bad

    def test_leap_day(self):
        assert day_of_month("2024-02-29") == 29
        with pytest.raises(InvalidEventDateError):
            day_of_month("2025-02-29")

    def test_impossible_date_has_no_month(self):
        with pytest.raises(InvalidEventDateError) as exc_info:
            month_key_for_date_string("2025-02-30")
        assert exc_info.value.code == "INVALID_EVENT_DATE"


class TestCurrentMonth:

    NOW = datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)

    def test_current_month_key(self):
        assert current_month_key(self.NOW) == "2025-03"

    @pytest.mark.parametrize(
        "month_key,expected",
        [
            ("2025-02", False),
            ("2024-12", False),
            ("2025-03", True),
            ("2025-04", True),
            ("2026-01", True),
        ],
    )
    def test_is_current_or_future(self, month_key, expected):
        assert is_current_or_future(month_key, self.NOW) is expected
