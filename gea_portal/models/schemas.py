"""
Pydantic schemas for data validation and serialization.
Covers the typed records (Household, Member, Reservation) and request bodies.
"""
from datetime import date, datetime
from typing import Any, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field, field_validator, model_validator

from gea_portal.core.config import settings

from .enums import (
    ActorRole,
    Facility,
    Relationship,
    ReservationStatus,
)


def _as_local(value: datetime) -> datetime:
    """Attach the portal timezone to naive datetimes."""
    if value.tzinfo is None:
        return value.replace(tzinfo=ZoneInfo(settings.scheduler_timezone))
    return value


# ==========================================
# RECORD SCHEMAS
# ==========================================

class Household(BaseModel):
    """A family/individual membership unit."""
    household_id: str
    household_name: str
    membership_type: Optional[str] = None
    household_type: Optional[str] = None
    active: bool = True
    expiration_date: Optional[date] = None
    primary_email: Optional[str] = None
    primary_phone: Optional[str] = None


class Member(BaseModel):
    """A person within a household."""
    individual_id: str
    household_id: str
    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None
    relationship_to_primary: Relationship = Relationship.PRIMARY
    date_of_birth: Optional[date] = None
    active: bool = True

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_staff(self) -> bool:
        return self.relationship_to_primary == Relationship.STAFF

    def age_on(self, on_date: date) -> Optional[int]:
        """Age in whole years on the given date."""
        if self.date_of_birth is None:
            return None
        dob = self.date_of_birth
        return on_date.year - dob.year - ((on_date.month, on_date.day) < (dob.month, dob.day))


class Reservation(BaseModel):
    """
    A facility reservation as stored in the reservations table.

    duration_hours is stored independently of start/end and is
    not reconciled with them.
    """
    reservation_id: str
    household_id: str
    household_name: Optional[str] = None
    primary_email: Optional[str] = None
    facility: Facility
    event_date: date
    start_time: datetime
    end_time: datetime
    duration_hours: float
    event_name: Optional[str] = None
    status: ReservationStatus

    # Guests
    has_guests: bool = False
    guest_count: int = 0
    guest_list_deadline: Optional[date] = None
    guest_list_submitted: bool = False

    # Excess / bumping
    is_excess_reservation: bool = False
    bump_window_deadline: Optional[date] = None
    bumped_by_household_id: Optional[str] = None
    bumped_date: Optional[datetime] = None

    # Audit fields
    created_date: Optional[datetime] = None
    last_modified_date: Optional[datetime] = None
    approved_by: Optional[str] = None
    approved_date: Optional[datetime] = None
    approval_notes: Optional[str] = None
    denied_by: Optional[str] = None
    denial_reason: Optional[str] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancellation_date: Optional[datetime] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def localize(cls, value: datetime) -> datetime:
        return _as_local(value)

    def to_row(self) -> dict[str, Any]:
        """Serialize for the record store (dates as ISO strings)."""
        return self.model_dump(mode="json")


# ==========================================
# REQUEST / RESULT SCHEMAS
# ==========================================

class Actor(BaseModel):
    """Pre-authenticated caller identity supplied by the auth layer."""
    email: str = Field(..., min_length=3)
    role: ActorRole = ActorRole.MEMBER

    @property
    def is_approver(self) -> bool:
        return self.role in (ActorRole.BOARD, ActorRole.MGT)


SYSTEM_ACTOR = Actor(email="system", role=ActorRole.BOARD)


class BookingRequest(BaseModel):
    """Request body for creating a reservation."""
    household_id: str = Field(..., min_length=1)
    primary_email: Optional[str] = Field(None, description="Defaults to the household's primary email")
    facility: Facility
    event_date: date
    start_time: datetime
    end_time: datetime
    duration_hours: Optional[float] = Field(
        None,
        gt=0,
        description="Booked hours; derived from start/end when omitted"
    )
    event_name: str = Field("", max_length=200)
    has_guests: bool = False
    guest_count: int = Field(0, ge=0)

    @field_validator("start_time", "end_time")
    @classmethod
    def localize(cls, value: datetime) -> datetime:
        return _as_local(value)

    @field_validator("event_name")
    @classmethod
    def strip_event_name(cls, value: str) -> str:
        return value.strip()

    @model_validator(mode='after')
    def validate_times(self) -> 'BookingRequest':
        """Ensure the times fall on event_date and fill in the duration."""
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        local_start = self.start_time.astimezone(ZoneInfo(settings.scheduler_timezone))
        if local_start.date() != self.event_date:
            raise ValueError(
                f"event_date {self.event_date} does not match start_time "
                f"date {local_start.date()}"
            )
        if self.duration_hours is None:
            seconds = (self.end_time - self.start_time).total_seconds()
            self.duration_hours = round(seconds / 3600, 2)
        return self


class ApprovalRequest(BaseModel):
    """Request body for approving a reservation."""
    notes: Optional[str] = Field(None, max_length=1000)


class DenialRequest(BaseModel):
    """Request body for denying a reservation."""
    reason: str = Field(..., min_length=1, max_length=1000)


class CancellationRequest(BaseModel):
    """Request body for cancelling a reservation."""
    reason: Optional[str] = Field(None, max_length=1000)


class BumpRequest(BaseModel):
    """Request body for bumping a tentative reservation."""
    bumped_by_household_id: str = Field(..., min_length=1)
    reason: Optional[str] = Field(None, max_length=1000)
