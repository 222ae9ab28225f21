from datetime import datetime

import pytest

from cleanday.constants import RecurrenceFrequency
from cleanday.domain.scheduling.time_utils import (
    do_time_slots_overlap,
    format_currency,
    format_duration,
    generate_recurring_dates,
    get_day_boundaries,
    get_week_boundaries,
    next_occurrence,
)

NINE = datetime(2025, 3, 12, 9, 0)
TEN = datetime(2025, 3, 12, 10, 0)


class TestOverlap:
    def test_back_to_back_slots_do_not_overlap(self):
        assert not do_time_slots_overlap(NINE, 60, TEN, 60)
        assert not do_time_slots_overlap(TEN, 60, NINE, 60)

    def test_partial_overlap(self):
        assert do_time_slots_overlap(NINE, 90, TEN, 60)
        assert do_time_slots_overlap(TEN, 60, NINE, 90)

    def test_containment_overlaps(self):
        assert do_time_slots_overlap(NINE, 240, TEN, 30)
        assert do_time_slots_overlap(TEN, 30, NINE, 240)

    def test_identical_slots_overlap(self):
        assert do_time_slots_overlap(TEN, 60, TEN, 60)

    def test_separate_slots(self):
        assert not do_time_slots_overlap(NINE, 30, TEN, 30)


def test_day_boundaries_cover_the_whole_day():
    start, end = get_day_boundaries(datetime(2025, 3, 12, 15, 30))
    assert start == datetime(2025, 3, 12, 0, 0)
    assert end.date() == start.date()
    assert (end.hour, end.minute, end.second) == (23, 59, 59)


def test_week_runs_sunday_to_saturday():
    # 2025-03-12 is a Wednesday
    start, end = get_week_boundaries(datetime(2025, 3, 12, 8))
    assert start == datetime(2025, 3, 9)
    assert end.date() == datetime(2025, 3, 15).date()


def test_week_of_a_sunday_starts_that_day():
    start, _ = get_week_boundaries(datetime(2025, 3, 9, 18))
    assert start == datetime(2025, 3, 9)


def test_monthly_step_clamps_to_month_length():
    assert next_occurrence(datetime(2025, 1, 31), RecurrenceFrequency.MONTHLY) == datetime(2025, 2, 28)
    assert next_occurrence(datetime(2024, 1, 31), RecurrenceFrequency.MONTHLY) == datetime(2024, 2, 29)
    assert next_occurrence(datetime(2025, 12, 15), RecurrenceFrequency.MONTHLY) == datetime(2026, 1, 15)


class TestRecurrence:
    def test_weekly_dates_stop_at_end_date(self):
        dates = generate_recurring_dates(TEN, RecurrenceFrequency.WEEKLY, datetime(2025, 4, 2, 10))
        assert dates == [
            datetime(2025, 3, 19, 10),
            datetime(2025, 3, 26, 10),
            datetime(2025, 4, 2, 10),
        ]

    def test_biweekly_step(self):
        dates = generate_recurring_dates(TEN, RecurrenceFrequency.BIWEEKLY, datetime(2025, 4, 30))
        assert [d.day for d in dates] == [26, 9, 23]

    def test_monthly_from_the_31st_settles_after_february(self):
        dates = generate_recurring_dates(
            datetime(2025, 1, 31, 9), RecurrenceFrequency.MONTHLY, datetime(2025, 4, 30)
        )
        assert dates == [datetime(2025, 2, 28, 9), datetime(2025, 3, 28, 9), datetime(2025, 4, 28, 9)]

    def test_start_is_not_included_and_cap_applies(self):
        dates = generate_recurring_dates(TEN, RecurrenceFrequency.WEEKLY, max_occurrences=5)
        assert len(dates) == 5
        assert TEN not in dates

    def test_unknown_frequency(self):
        with pytest.raises(ValueError):
            next_occurrence(TEN, "DAILY")


def test_format_duration():
    assert format_duration(30) == "30 min"
    assert format_duration(60) == "1 hr"
    assert format_duration(90) == "1 hr 30 min"
    assert format_duration(120) == "2 hrs"


def test_format_currency():
    assert format_currency(1234.5) == "$1,234.50"
    assert format_currency(-5) == "-$5.00"
