"""
Tests for Business Days Service.

Covers:
- is_business_day / is_weekend / is_holiday with a HolidayCalendar
- calculate_business_day_deadline (guest list and Leobo bump windows)
- Guest list 5:00 PM cutoff
- Holiday loading from the holiday_calendar table
"""
import pytest
from datetime import date, timedelta
from unittest.mock import MagicMock

from gea_portal.core.exceptions import ConfigurationError, DatabaseError
from gea_portal.models.enums import Facility
from gea_portal.services.business_days import (
    HolidayCalendar,
    calculate_business_day_deadline,
    get_bump_window_deadline,
    get_guest_list_deadline,
    is_business_day,
    is_guest_list_deadline_met,
    is_holiday,
    is_weekend,
)

from tests.helpers import local_dt


NO_HOLIDAYS = HolidayCalendar.from_dates([])


class TestBusinessDayPredicates:
    """Tests for weekend / holiday checks."""

    @pytest.mark.unit
    def test_weekday_is_business_day(self):
        # 2026-03-11 is Wednesday
        wednesday = date(2026, 3, 11)

        assert is_weekend(wednesday) is False
        assert is_business_day(wednesday, NO_HOLIDAYS) is True

    @pytest.mark.unit
    def test_weekend_is_not_business_day(self):
        saturday = date(2026, 3, 14)
        sunday = date(2026, 3, 15)

        assert is_weekend(saturday) is True
        assert is_weekend(sunday) is True
        assert is_business_day(saturday, NO_HOLIDAYS) is False
        assert is_business_day(sunday, NO_HOLIDAYS) is False

    @pytest.mark.unit
    def test_holiday_is_not_business_day(self):
        # Good Friday 2026
        good_friday = date(2026, 4, 3)
        calendar = HolidayCalendar.from_dates([good_friday])

        assert is_holiday(good_friday, calendar) is True
        assert is_business_day(good_friday, calendar) is False

    @pytest.mark.unit
    def test_only_observed_date_counts(self):
        """A Saturday holiday observed on Friday: the Saturday itself is not in the calendar."""
        observed_friday = date(2026, 9, 25)
        calendar = HolidayCalendar.from_dates([observed_friday])

        assert is_holiday(date(2026, 9, 26), calendar) is False
        assert is_holiday(observed_friday, calendar) is True


class TestBusinessDayDeadline:
    """Tests for walking back N business days."""

    @pytest.mark.unit
    def test_zero_days_returns_event_date(self):
        saturday = date(2026, 3, 14)

        assert calculate_business_day_deadline(saturday, 0, NO_HOLIDAYS) == saturday

    @pytest.mark.unit
    def test_walk_back_skips_weekend(self):
        # Monday -> 3 business days back = previous Wednesday
        result = calculate_business_day_deadline(date(2026, 3, 16), 3, NO_HOLIDAYS)

        assert result == date(2026, 3, 11)

    @pytest.mark.unit
    def test_walk_back_skips_holiday(self):
        calendar = HolidayCalendar.from_dates([date(2026, 3, 13)])

        result = calculate_business_day_deadline(date(2026, 3, 16), 3, calendar)

        assert result == date(2026, 3, 10)

    @pytest.mark.unit
    def test_result_is_always_business_day(self):
        calendar = HolidayCalendar.from_dates([date(2026, 3, 13), date(2026, 3, 20)])
        start = date(2026, 3, 1)

        for offset in range(60):
            event_date = start + timedelta(days=offset)
            for days_back in (1, 3, 5):
                result = calculate_business_day_deadline(event_date, days_back, calendar)
                assert result < event_date
                assert is_business_day(result, calendar)

    @pytest.mark.unit
    def test_walk_back_across_year_boundary(self, calendar, create_holiday):
        create_holiday(date(2027, 1, 1), "New Year's Day")

        result = calculate_business_day_deadline(date(2027, 1, 4), 3, calendar)

        assert result == date(2026, 12, 29)

    @pytest.mark.edge
    def test_calendar_without_business_days_raises(self):
        every_day = [date(2026, 1, 1) + timedelta(days=i) for i in range(365)]
        calendar = HolidayCalendar.from_dates(every_day)

        with pytest.raises(ConfigurationError):
            calculate_business_day_deadline(date(2026, 6, 1), 1, calendar)


class TestReservationDeadlines:
    """Tests for guest list and bump window deadlines."""

    @pytest.mark.unit
    def test_guest_list_deadline_three_business_days(self):
        assert get_guest_list_deadline(date(2026, 3, 16), NO_HOLIDAYS) == date(2026, 3, 11)

    @pytest.mark.unit
    def test_guest_list_deadline_for_sunday_event(self):
        assert get_guest_list_deadline(date(2026, 3, 15), NO_HOLIDAYS) == date(2026, 3, 11)

    @pytest.mark.unit
    def test_guest_list_cutoff_is_five_pm(self):
        event_date = date(2026, 3, 16)
        deadline = date(2026, 3, 11)

        assert is_guest_list_deadline_met(event_date, NO_HOLIDAYS, local_dt(deadline, 16, 59))
        assert is_guest_list_deadline_met(event_date, NO_HOLIDAYS, local_dt(deadline, 17, 0))
        assert not is_guest_list_deadline_met(event_date, NO_HOLIDAYS, local_dt(deadline, 17, 1))

    @pytest.mark.unit
    def test_tennis_bump_window_is_calendar_days(self):
        # Sunday event: one calendar day back lands on Saturday
        result = get_bump_window_deadline(Facility.TENNIS, date(2026, 3, 15), NO_HOLIDAYS)

        assert result == date(2026, 3, 14)

    @pytest.mark.unit
    def test_leobo_bump_window_is_business_days(self):
        result = get_bump_window_deadline(Facility.LEOBO, date(2026, 3, 21), NO_HOLIDAYS)

        assert result == date(2026, 3, 16)

    @pytest.mark.unit
    def test_whole_facility_uses_leobo_window(self):
        result = get_bump_window_deadline(Facility.WHOLE_FACILITY, date(2026, 3, 23), NO_HOLIDAYS)

        assert result == date(2026, 3, 16)


class TestHolidayCalendar:
    """Tests for loading holidays from the store."""

    @pytest.mark.unit
    def test_loads_active_holidays_for_year(self, calendar, create_holiday):
        create_holiday(date(2026, 7, 1), "Sir Seretse Khama Day")
        create_holiday(date(2026, 7, 20), "President's Day", active=False)
        create_holiday(date(2025, 7, 1), "Sir Seretse Khama Day")

        holidays = calendar.holidays_for_year(2026)

        assert holidays == {date(2026, 7, 1)}

    @pytest.mark.unit
    def test_year_is_loaded_once(self, fresh_mock_client, create_holiday):
        calendar = HolidayCalendar(db=fresh_mock_client)
        assert date(2026, 7, 1) not in calendar

        # Edits after the first load are not seen by this calendar
        create_holiday(date(2026, 7, 1))

        assert date(2026, 7, 1) not in calendar
        assert date(2026, 7, 1) in HolidayCalendar(db=fresh_mock_client)

    @pytest.mark.unit
    def test_load_failure_raises_database_error(self):
        db = MagicMock()
        db.client.table.side_effect = Exception("connection refused")
        calendar = HolidayCalendar(db=db)

        with pytest.raises(DatabaseError):
            is_business_day(date(2026, 3, 11), calendar)
