"""
Enum types for the reservation engine.
Values match the strings stored in the reservations, members and audit_logs tables.
"""
from enum import Enum


class Facility(str, Enum):
    """
    Bookable facilities.
    Leobo and Whole Facility share one monthly quota and both require approval.
    """
    TENNIS = "Tennis Court"
    LEOBO = "Leobo"
    WHOLE_FACILITY = "Whole Facility"

    @property
    def is_leobo_group(self) -> bool:
        return self in LEOBO_GROUP

    @property
    def requires_approval(self) -> bool:
        return self in FACILITIES_REQUIRING_APPROVAL


LEOBO_GROUP = frozenset({Facility.LEOBO, Facility.WHOLE_FACILITY})
FACILITIES_REQUIRING_APPROVAL = frozenset({Facility.LEOBO, Facility.WHOLE_FACILITY})


class ReservationStatus(str, Enum):
    """Reservation lifecycle states."""
    PENDING = "Pending"  # Awaiting approval
    APPROVED = "Approved"  # Approved standard reservation
    TENTATIVE = "Tentative"  # Approved excess reservation (subject to bumping)
    CONFIRMED = "Confirmed"  # Past bumping window, fully locked in
    CANCELLED = "Cancelled"  # Cancelled, denied or bumped
    COMPLETED = "Completed"  # Event date has passed
    WAITLISTED = "Waitlisted"  # On waitlist for a taken slot

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


# Statuses that occupy a time slot
ACTIVE_STATUSES = frozenset({
    ReservationStatus.PENDING,
    ReservationStatus.APPROVED,
    ReservationStatus.TENTATIVE,
    ReservationStatus.CONFIRMED,
})

# Statuses that consume a household's quota (Pending never counts)
USAGE_STATUSES = frozenset({
    ReservationStatus.APPROVED,
    ReservationStatus.TENTATIVE,
    ReservationStatus.CONFIRMED,
})

TERMINAL_STATUSES = frozenset({
    ReservationStatus.CANCELLED,
    ReservationStatus.COMPLETED,
})


class Relationship(str, Enum):
    """Member relationship to the household's primary member."""
    PRIMARY = "Primary"
    SPOUSE = "Spouse"
    CHILD = "Child"
    STAFF = "Staff"  # No booking rights, excluded from headcounts


class ActorRole(str, Enum):
    """Roles passed in by the (external) authorization layer."""
    MEMBER = "member"
    BOARD = "board"
    MGT = "mgt"  # Management Officer, approves Leobo bookings


class AuditAction(str, Enum):
    """Audit log action types."""
    RESERVATION_CREATED = "RESERVATION_CREATED"
    RESERVATION_APPROVED = "RESERVATION_APPROVED"
    RESERVATION_DENIED = "RESERVATION_DENIED"
    RESERVATION_CANCELLED = "RESERVATION_CANCELLED"
    RESERVATION_BUMPED = "RESERVATION_BUMPED"
