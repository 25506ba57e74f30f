# Data models - Enums and Pydantic Schemas
from .enums import (
    Facility,
    ReservationStatus,
    Relationship,
    ActorRole,
    AuditAction,
    ACTIVE_STATUSES,
    USAGE_STATUSES,
    TERMINAL_STATUSES,
    LEOBO_GROUP,
)
from .schemas import (
    Household,
    Member,
    Reservation,
    Actor,
    SYSTEM_ACTOR,
    BookingRequest,
    ApprovalRequest,
    DenialRequest,
    CancellationRequest,
    BumpRequest,
)

__all__ = [
    # Enums
    "Facility",
    "ReservationStatus",
    "Relationship",
    "ActorRole",
    "AuditAction",
    "ACTIVE_STATUSES",
    "USAGE_STATUSES",
    "TERMINAL_STATUSES",
    "LEOBO_GROUP",
    # Records
    "Household",
    "Member",
    "Reservation",
    # Requests
    "Actor",
    "SYSTEM_ACTOR",
    "BookingRequest",
    "ApprovalRequest",
    "DenialRequest",
    "CancellationRequest",
    "BumpRequest",
]
