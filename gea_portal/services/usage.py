"""
Usage Accounting.

Computes how much of its quota a household has consumed:
- Tennis: hours per week, Monday 00:00 to the following Monday (exclusive)
- Leobo + Whole Facility: reservations per calendar month

Only Approved, Tentative and Confirmed reservations count.
Pending and Cancelled never do.
"""
from datetime import date, timedelta
from typing import Any, Iterable, Optional

from gea_portal.core.config import settings
from gea_portal.models.enums import (
    Facility,
    LEOBO_GROUP,
    ReservationStatus,
    USAGE_STATUSES,
)

from .business_days import local_today
from .store import ReservationStore


def week_window(ref_date: date) -> tuple[date, date]:
    """Monday of ref_date's week and the Monday after it."""
    monday = ref_date - timedelta(days=ref_date.weekday())
    return monday, monday + timedelta(days=7)


def month_window(ref_date: date) -> tuple[date, date]:
    """First day of ref_date's month and the first day of the next month."""
    first = ref_date.replace(day=1)
    if first.month == 12:
        return first, first.replace(year=first.year + 1, month=1)
    return first, first.replace(month=first.month + 1)


class UsageAccounting:
    """Read-only quota aggregation over the reservations table."""

    def __init__(self, store: Optional[ReservationStore] = None):
        self.store = store or ReservationStore()

    def sum_reservation_hours(
        self,
        household_id: str,
        facilities: Iterable[Facility],
        start: date,
        end: date,
        statuses: Iterable[ReservationStatus] = USAGE_STATUSES,
    ) -> float:
        """Total duration_hours for matching reservations with event_date in [start, end)."""
        reservations = self.store.list_reservations(
            household_id=household_id,
            facilities=list(facilities),
            statuses=list(statuses),
            date_from=start,
            date_to=end,
        )
        return float(sum(r.duration_hours for r in reservations))

    def count_reservations(
        self,
        household_id: str,
        facilities: Iterable[Facility],
        start: date,
        end: date,
        statuses: Iterable[ReservationStatus] = USAGE_STATUSES,
    ) -> int:
        """Number of matching reservations with event_date in [start, end)."""
        return len(self.store.list_reservations(
            household_id=household_id,
            facilities=list(facilities),
            statuses=list(statuses),
            date_from=start,
            date_to=end,
        ))

    def get_tennis_hours_this_week(
        self,
        household_id: str,
        ref_date: Optional[date] = None
    ) -> float:
        week_start, week_end = week_window(ref_date or local_today())
        return self.sum_reservation_hours(
            household_id, [Facility.TENNIS], week_start, week_end
        )

    def get_leobo_reservations_this_month(
        self,
        household_id: str,
        ref_date: Optional[date] = None
    ) -> int:
        month_start, month_end = month_window(ref_date or local_today())
        return self.count_reservations(
            household_id, LEOBO_GROUP, month_start, month_end
        )

    def get_leobo_hours_this_month(
        self,
        household_id: str,
        ref_date: Optional[date] = None
    ) -> float:
        month_start, month_end = month_window(ref_date or local_today())
        return self.sum_reservation_hours(
            household_id, LEOBO_GROUP, month_start, month_end
        )

    def get_usage_summary(
        self,
        household_id: str,
        ref_date: Optional[date] = None
    ) -> dict[str, Any]:
        """Quota usage for the member dashboard."""
        ref_date = ref_date or local_today()
        week_start, week_end = week_window(ref_date)
        month_start, _ = month_window(ref_date)

        return {
            "household_id": household_id,
            "reference_date": ref_date.isoformat(),
            "tennis": {
                "week_start": week_start.isoformat(),
                "week_end": (week_end - timedelta(days=1)).isoformat(),
                "hours_used": self.get_tennis_hours_this_week(household_id, ref_date),
                "hours_limit": settings.tennis_weekly_limit_hours,
            },
            "leobo": {
                "month": month_start.strftime("%B %Y"),
                "count_used": self.get_leobo_reservations_this_month(household_id, ref_date),
                "count_limit": settings.leobo_monthly_limit,
                "hours_used": self.get_leobo_hours_this_month(household_id, ref_date),
            },
        }
