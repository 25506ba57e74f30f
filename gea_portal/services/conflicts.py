"""
Conflict Detector.

Two bookings conflict when their half-open intervals overlap on the same
facility: new_start < existing_end AND new_end > existing_start.
Touching endpoints (one ends exactly when the other starts) do not conflict.
"""
from datetime import datetime, timedelta
from typing import Optional

from gea_portal.models.enums import ACTIVE_STATUSES, Facility

from .store import ReservationStore


def intervals_overlap(
    start_a: datetime,
    end_a: datetime,
    start_b: datetime,
    end_b: datetime
) -> bool:
    """Half-open interval overlap check."""
    return start_a < end_b and end_a > start_b


class ConflictDetector:
    """Checks a requested slot against active reservations for a facility."""

    def __init__(self, store: Optional[ReservationStore] = None):
        self.store = store or ReservationStore()

    def has_conflict(
        self,
        facility: Facility,
        start_time: datetime,
        end_time: datetime,
        exclude_reservation_id: Optional[str] = None
    ) -> bool:
        """
        True if any Pending/Approved/Tentative/Confirmed reservation on this
        facility overlaps [start_time, end_time).
        """
        # Candidates are narrowed by event_date with a day of slack either side
        candidates = self.store.list_reservations(
            facilities=[facility],
            statuses=ACTIVE_STATUSES,
            date_from=start_time.date() - timedelta(days=1),
            date_to=end_time.date() + timedelta(days=2),
        )

        for existing in candidates:
            if existing.reservation_id == exclude_reservation_id:
                continue
            if intervals_overlap(start_time, end_time, existing.start_time, existing.end_time):
                return True
        return False
