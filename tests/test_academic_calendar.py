"""Tests for academic week numbering."""

from datetime import date, datetime, timezone

import pytest

from coursewatch.services.academic_calendar import AcademicCalendar, week_number_of
from factories import TERM_START, at_week


class TestWeekNumberOf:
    def test_term_start_is_week_one(self):
        assert week_number_of(TERM_START, TERM_START) == 1

    def test_seventh_day_still_week_one(self):
        assert week_number_of(date(2026, 9, 13), TERM_START) == 1
        assert week_number_of(date(2026, 9, 14), TERM_START) == 2

    def test_before_term_start(self):
        assert week_number_of(date(2026, 9, 6), TERM_START) == 0

    def test_iso_week_without_term(self):
        assert week_number_of(date(2026, 1, 1)) == 1
        assert week_number_of(date(2026, 10, 19)) == 43

    def test_iso_year_boundary(self):
        # 2027-01-01 is a Friday in ISO week 53 of 2026
        assert week_number_of(date(2027, 1, 1)) == 53

    def test_accepts_datetime(self):
        assert week_number_of(datetime(2026, 9, 21, 23, 59), TERM_START) == 3


class TestAcademicCalendar:
    def test_week_number_uses_calendar_timezone(self):
        calendar = AcademicCalendar(TERM_START, tz="Pacific/Auckland")
        # Sunday 13:00 UTC is already Monday in Auckland
        assert calendar.week_number_of(datetime(2026, 9, 13, 13, 0, tzinfo=timezone.utc)) == 2

    def test_week_bounds(self):
        calendar = AcademicCalendar(TERM_START)
        assert calendar.week_start(2) == datetime(2026, 9, 14, tzinfo=timezone.utc)
        end = calendar.week_end(2)
        assert end.date() == date(2026, 9, 20)
        assert (end.hour, end.minute, end.second) == (23, 59, 59)

    def test_iso_week_bounds(self):
        calendar = AcademicCalendar()
        ref = datetime(2026, 10, 19, tzinfo=timezone.utc)
        assert calendar.week_start(43, ref).date() == date(2026, 10, 19)
        assert calendar.week_end(42, ref).date() == date(2026, 10, 18)

    @pytest.mark.parametrize(
        "submitted_at,late",
        [
            (at_week(1, weekday=6, hour=23), False),
            (at_week(2, weekday=0, hour=0), True),
            (at_week(4), True),
        ],
    )
    def test_is_late(self, submitted_at, late):
        assert AcademicCalendar(TERM_START).is_late(1, submitted_at) is late

    def test_naive_datetimes_are_utc(self):
        calendar = AcademicCalendar(TERM_START)
        assert calendar.week_number_of(datetime(2026, 9, 14, 0, 30)) == 2


class TestIsoWeekLateness:
    """Without a term start, the week of the submission picks the ISO year."""

    @pytest.fixture
    def calendar(self):
        return AcademicCalendar()

    def test_next_week_submitted_early_is_on_time(self, calendar):
        # Wednesday of ISO week 42
        submitted = datetime(2026, 10, 14, 9, tzinfo=timezone.utc)
        assert calendar.is_late(43, submitted) is False
        assert calendar.week_start(43, submitted).date() == date(2026, 10, 19)

    @pytest.mark.parametrize("week,late", [(42, False), (41, True), (44, False)])
    def test_current_and_past_weeks(self, calendar, week, late):
        assert calendar.is_late(week, datetime(2026, 10, 14, 9, tzinfo=timezone.utc)) is late

    def test_last_week_of_year_submitted_in_january(self, calendar):
        # 2027-01-05 is in ISO week 1 of 2027; week 53 belongs to 2026
        submitted = datetime(2027, 1, 5, 12, tzinfo=timezone.utc)
        assert calendar.week_start(53, submitted).date() == date(2026, 12, 28)
        assert calendar.is_late(53, submitted) is True

    def test_first_week_of_year_submitted_in_december(self, calendar):
        # 2026-12-30 is in ISO week 53 of 2026; week 1 belongs to 2027
        submitted = datetime(2026, 12, 30, 12, tzinfo=timezone.utc)
        assert calendar.week_start(1, submitted).date() == date(2027, 1, 4)
        assert calendar.is_late(1, submitted) is False

    def test_week_53_of_a_short_year_rolls_into_next(self, calendar):
        # 2027 has 52 ISO weeks, so its week 53 is the first week of 2028
        submitted = datetime(2028, 6, 1, tzinfo=timezone.utc)
        assert calendar.week_start(53, submitted).date() == date(2028, 1, 3)
        assert calendar.is_late(53, submitted) is True
