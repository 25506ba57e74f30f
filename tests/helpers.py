"""
Test helper functions for the GEA Member Portal.

Provides shared constants and small builders for common test operations.
"""
from datetime import date, datetime
from typing import Dict, Any
from zoneinfo import ZoneInfo


GABORONE = ZoneInfo("Africa/Gaborone")

# Monday March 9, 2026, 10:00 local
FROZEN_NOW_UTC = datetime(2026, 3, 9, 8, 0, 0)
TODAY = date(2026, 3, 9)


def local_dt(day: date, hour: int, minute: int = 0) -> datetime:
    """Aware datetime in the portal timezone."""
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=GABORONE)


def booking_payload(
    *,
    household_id: str = "HSH-001",
    facility: str = "Tennis Court",
    event_date: date = date(2026, 3, 11),
    start_hour: int = 9,
    end_hour: int = 10,
    has_guests: bool = False,
    guest_count: int = 0,
    event_name: str = "",
    **kwargs
) -> Dict[str, Any]:
    """JSON body for POST /api/reservations."""
    return {
        "household_id": household_id,
        "facility": facility,
        "event_date": event_date.isoformat(),
        "start_time": local_dt(event_date, start_hour).isoformat(),
        "end_time": local_dt(event_date, end_hour).isoformat(),
        "has_guests": has_guests,
        "guest_count": guest_count,
        "event_name": event_name,
        **kwargs
    }


def actor_headers(email: str = "hsh-001@example.org", role: str = "member") -> Dict[str, str]:
    """Identity headers normally set by the upstream auth layer."""
    return {"X-Actor-Email": email, "X-Actor-Role": role}
