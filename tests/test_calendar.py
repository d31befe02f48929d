"""Tests for calendar, trigger and time-slot helpers."""

from datetime import UTC, date, datetime, time

import pytest

from api.v1.core.exceptions import PlanConfigurationError
from api.v1.plans.calendar import (
    default_time_slots,
    iter_calendar_dates,
    normalize_time_slot,
    normalize_time_slots,
    parse_calendar_date,
    parse_trigger_time,
    plan_wall_clock,
    resolve_time_slots,
    resolve_window,
    trigger_has_passed,
)


class TestTimeSlots:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("09:05", "09:05:00"),
            ("09:05:30", "09:05:30"),
            (" 18:00 ", "18:00:00"),
            ("09:05:30.123", "09:05:00"),
            ("9:05", "09:05:00"),
            ("9:05:30", "09:05:30"),
            ("09:5", None),
            ("25:00", None),
            ("", None),
            ("   ", None),
            (None, None),
        ],
    )
    def test_normalize_time_slot(self, raw, expected):
        assert normalize_time_slot(raw) == expected

    def test_blank_and_invalid_entries_are_dropped(self):
        assert normalize_time_slots(["", "10:00", "09:5", "  ", "14:30:15"]) == [
            "10:00:00",
            "14:30:15",
        ]

    def test_default_ladder(self):
        assert default_time_slots(2) == ["09:00:00", "12:00:00"]
        assert default_time_slots(5) == [
            "09:00:00",
            "12:00:00",
            "15:00:00",
            "18:00:00",
            "21:00:00",
        ]
        # More than the ladder has still yields five slots
        assert len(default_time_slots(8)) == 5

    def test_custom_times_override_defaults(self):
        """Custom times decide the slot count, not videos_per_day."""
        assert resolve_time_slots(["08:00", "", "20:00"], 5) == ["08:00:00", "20:00:00"]

    def test_all_blank_custom_times_fall_back_to_defaults(self):
        assert resolve_time_slots(["", "  "], 1) == ["09:00:00"]

    def test_no_achievable_slots_is_a_configuration_error(self):
        with pytest.raises(PlanConfigurationError, match="no achievable time slots"):
            resolve_time_slots(None, 0)


class TestDates:
    def test_parse_calendar_date(self):
        assert parse_calendar_date("2024-01-31") == date(2024, 1, 31)
        assert parse_calendar_date("2024-01-31T10:00:00Z") == date(2024, 1, 31)
        assert parse_calendar_date(date(2024, 2, 1)) == date(2024, 2, 1)
        assert parse_calendar_date(datetime(2024, 2, 1, 23, 0)) == date(2024, 2, 1)

    def test_parse_calendar_date_rejects_garbage(self):
        with pytest.raises(PlanConfigurationError, match="start_date"):
            parse_calendar_date("01/31/2024", "start_date")

    def test_iteration_is_inclusive_and_crosses_month_end(self):
        days = list(iter_calendar_dates(date(2024, 2, 28), date(2024, 3, 1)))
        assert days == [date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1)]

    def test_iteration_crosses_dst_without_drift(self):
        days = list(iter_calendar_dates(date(2024, 3, 9), date(2024, 3, 11)))
        assert days == [date(2024, 3, 9), date(2024, 3, 10), date(2024, 3, 11)]

    def test_iteration_is_capped(self):
        days = list(iter_calendar_dates(date(2024, 1, 1), date(2026, 1, 1), max_days=365))
        assert len(days) == 365

    def test_wall_clock_uses_plan_timezone(self):
        now = datetime(2024, 1, 2, 3, 0, tzinfo=UTC)
        assert plan_wall_clock("UTC", now) == (date(2024, 1, 2), time(3, 0))
        assert plan_wall_clock("America/New_York", now) == (date(2024, 1, 1), time(22, 0))

    def test_unknown_timezone(self):
        with pytest.raises(PlanConfigurationError, match="Unknown plan timezone"):
            plan_wall_clock("Mars/Olympus_Mons", datetime.now(UTC))


class TestTriggerAndWindow:
    def test_parse_trigger_time(self):
        assert parse_trigger_time("08:30") == time(8, 30)
        assert parse_trigger_time("08:30:45") == time(8, 30)
        assert parse_trigger_time(time(7, 0)) == time(7, 0)
        assert parse_trigger_time("") is None
        assert parse_trigger_time(None) is None
        with pytest.raises(PlanConfigurationError):
            parse_trigger_time("noon")

    def test_trigger_minute_counts_as_passed(self):
        assert trigger_has_passed(time(9, 0), time(9, 0, 59)) is True
        assert trigger_has_passed(time(9, 0), time(8, 59)) is False

    def test_start_today_after_trigger_moves_to_tomorrow(self):
        window = resolve_window(
            date(2024, 1, 1),
            date(2024, 1, 5),
            today=date(2024, 1, 1),
            current_time=time(10, 0),
            trigger_time=time(9, 0),
        )
        assert window.start == date(2024, 1, 2)
        assert window.end == date(2024, 1, 5)
        assert window.skipped_today is True

    def test_trigger_only_applies_to_today(self):
        window = resolve_window(
            date(2024, 1, 3),
            date(2024, 1, 5),
            today=date(2024, 1, 1),
            current_time=time(23, 0),
            trigger_time=time(9, 0),
        )
        assert window.start == date(2024, 1, 3)
        assert window.skipped_today is False

    def test_end_before_start_uses_default_window(self):
        window = resolve_window(
            date(2024, 1, 10),
            date(2024, 1, 1),
            today=date(2023, 12, 1),
            current_time=time(12, 0),
            trigger_time=None,
        )
        assert window.end == date(2024, 2, 9)
        assert window.end_extended is True
        assert window.days == 31

    def test_missing_end_uses_default_window(self):
        window = resolve_window(
            date(2024, 1, 1),
            None,
            today=date(2023, 12, 1),
            current_time=time(12, 0),
            trigger_time=None,
            default_days=7,
        )
        assert window.end == date(2024, 1, 8)
        assert window.end_extended is False

    def test_cutover_end_equal_to_original_start_is_extended(self):
        """Skipping today can push the start past a one-day window's end."""
        window = resolve_window(
            date(2024, 1, 1),
            date(2024, 1, 1),
            today=date(2024, 1, 1),
            current_time=time(12, 0),
            trigger_time=time(9, 0),
        )
        assert window.start == date(2024, 1, 2)
        assert window.end == date(2024, 2, 1)
