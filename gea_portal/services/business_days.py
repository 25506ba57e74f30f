"""
Business Day Calculator for the GEA Member Portal.

Handles holiday-aware business day arithmetic used by the reservation engine.

Key Rules:
- Business day = not Saturday/Sunday AND not an active holiday
- Holidays are matched by exact observed date (a Saturday holiday is stored
  under its Friday observed date; the raw Saturday is not itself a holiday)
- Guest lists are due 3 business days before the event, by 5:00 PM
- Leobo bump window closes 5 business days before the event
- Tennis bump window closes a flat number of CALENDAR days before the event
"""
import logging
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from gea_portal.core.config import settings
from gea_portal.core.database import get_supabase_client
from gea_portal.core.exceptions import ConfigurationError, DatabaseError
from gea_portal.models.enums import Facility


logger = logging.getLogger(__name__)


def portal_timezone() -> ZoneInfo:
    """Timezone the association operates in."""
    return ZoneInfo(settings.scheduler_timezone)


def local_now() -> datetime:
    """Current time in the portal timezone."""
    return datetime.now(portal_timezone())


def local_today() -> date:
    """Today's date in the portal timezone."""
    return local_now().date()


class HolidayCalendar:
    """
    Holiday lookup for one request or batch run.

    Holidays for a year are read from the holiday_calendar table the first
    time a date in that year is checked, then kept for the lifetime of this
    object. Create a new calendar per run to pick up edits.

    Usage:
        calendar = HolidayCalendar()
        calculate_business_day_deadline(event_date, 3, calendar)
    """

    def __init__(self, db=None):
        self._db = db
        self._static = False
        self._by_year: dict[int, set[date]] = {}

    @classmethod
    def from_dates(cls, holidays: Iterable[date]) -> "HolidayCalendar":
        """Build a calendar from a fixed set of observed dates (no store access)."""
        calendar = cls()
        calendar._static = True
        for holiday in holidays:
            calendar._by_year.setdefault(holiday.year, set()).add(holiday)
        return calendar

    def holidays_for_year(self, year: int) -> set[date]:
        """Active observed holiday dates for a year."""
        if year not in self._by_year:
            self._by_year[year] = set() if self._static else self._load_year(year)
        return self._by_year[year]

    def _load_year(self, year: int) -> set[date]:
        """Load active holidays for a year from the database."""
        db = self._db or get_supabase_client()

        try:
            response = db.client.table("holiday_calendar").select(
                "holiday_date, holiday_name, active"
            ).gte(
                "holiday_date", date(year, 1, 1).isoformat()
            ).lt(
                "holiday_date", date(year + 1, 1, 1).isoformat()
            ).execute()
        except Exception as e:
            raise DatabaseError(
                "Failed to load holiday calendar",
                table="holiday_calendar",
                operation="select",
                original_error=str(e)
            ) from e

        holidays = {
            date.fromisoformat(str(row["holiday_date"])[:10])
            for row in (response.data or [])
            if row.get("active", True) is not False
        }
        logger.debug(f"Loaded {len(holidays)} holidays for {year}")
        return holidays

    def __contains__(self, check_date: date) -> bool:
        return check_date in self.holidays_for_year(check_date.year)


def is_weekend(check_date: date) -> bool:
    """Check if date is a weekend (Saturday=5, Sunday=6)."""
    return check_date.weekday() >= 5


def is_holiday(check_date: date, calendar: Optional[HolidayCalendar] = None) -> bool:
    """Check if date is an observed holiday."""
    calendar = calendar or HolidayCalendar()
    return check_date in calendar


def is_business_day(check_date: date, calendar: Optional[HolidayCalendar] = None) -> bool:
    """
    Check if a date is a business day.

    Business day = Not weekend AND not holiday
    """
    if is_weekend(check_date):
        return False
    if is_holiday(check_date, calendar):
        return False
    return True


def calculate_business_day_deadline(
    event_date: date,
    days_back: int,
    calendar: Optional[HolidayCalendar] = None
) -> date:
    """
    Walk back from an event date by N business days.

    Example:
        event_date = Monday April 14
        days_back = 1
        result = Friday April 11 (skips weekend)

    Args:
        event_date: The event date
        days_back: Number of business days to go back (0 returns event_date)
        calendar: Holiday calendar for this run

    Returns:
        The date N business days before event_date

    Raises:
        ConfigurationError: If the holiday calendar leaves no business days
    """
    if days_back <= 0:
        return event_date

    calendar = calendar or HolidayCalendar()
    result_date = event_date
    days_counted = 0
    max_iterations = days_back * 3 + 30  # Safety limit
    iterations = 0

    while days_counted < days_back:
        if iterations >= max_iterations:
            raise ConfigurationError(
                f"No {days_back} business days found within {max_iterations} days "
                f"before {event_date}; check the holiday calendar",
                config_key="holiday_calendar"
            )
        result_date = result_date - timedelta(days=1)

        if is_business_day(result_date, calendar):
            days_counted += 1

        iterations += 1

    return result_date


# ==========================================
# RESERVATION DEADLINES
# ==========================================

def get_guest_list_deadline(
    event_date: date,
    calendar: Optional[HolidayCalendar] = None
) -> date:
    """Guest list submission deadline for an event."""
    return calculate_business_day_deadline(
        event_date, settings.guest_list_deadline_days, calendar
    )


def is_guest_list_deadline_met(
    event_date: date,
    calendar: Optional[HolidayCalendar] = None,
    now: Optional[datetime] = None
) -> bool:
    """
    Check if a guest list can still be submitted for an event.

    Lists are accepted until the cutoff hour (5:00 PM local) on the
    deadline day.
    """
    deadline = get_guest_list_deadline(event_date, calendar)
    cutoff = datetime.combine(
        deadline, time(settings.guest_list_cutoff_hour, 0), tzinfo=portal_timezone()
    )
    return (now or local_now()) <= cutoff


def get_bump_window_deadline(
    facility: Facility,
    event_date: date,
    calendar: Optional[HolidayCalendar] = None
) -> date:
    """
    Last day an excess reservation can still be bumped.

    Tennis: event date minus TENNIS_BUMP_WINDOW_DAYS calendar days.
    Leobo / Whole Facility: LEOBO_BUMP_WINDOW_DAYS business days back.
    """
    if facility == Facility.TENNIS:
        return event_date - timedelta(days=settings.tennis_bump_window_days)
    return calculate_business_day_deadline(
        event_date, settings.leobo_bump_window_days, calendar
    )
