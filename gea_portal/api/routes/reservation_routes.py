"""
Reservation API Routes for the GEA Member Portal.

Thin HTTP layer over ReservationService. The caller identity is supplied
by the upstream auth layer in the X-Actor-Email / X-Actor-Role headers;
no credential checks happen here. A member's household is looked up from
their member record.

Errors are raised as PortalException subclasses and rendered by the
handler in main.py.
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Path, Query

from gea_portal.models.enums import ActorRole
from gea_portal.models.schemas import (
    Actor,
    ApprovalRequest,
    BookingRequest,
    BumpRequest,
    CancellationRequest,
    DenialRequest,
)
from gea_portal.services.business_days import is_guest_list_deadline_met
from gea_portal.services.reservations import ReservationService


router = APIRouter(prefix="/api/reservations", tags=["Reservations"])


# ==========================================
# DEPENDENCIES
# ==========================================

def get_reservation_service() -> ReservationService:
    """One service (and holiday calendar) per request."""
    return ReservationService()


def get_actor(
    x_actor_email: str = Header(..., description="Authenticated user's email"),
    x_actor_role: str = Header("member", description="member, board or mgt"),
) -> Actor:
    """Build the pre-authenticated actor from upstream headers."""
    try:
        role = ActorRole(x_actor_role.strip().lower())
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid role. Must be one of: {', '.join(r.value for r in ActorRole)}"
        )
    return Actor(email=x_actor_email.strip().lower(), role=role)


# ==========================================
# BOOKING
# ==========================================

@router.post(
    "",
    summary="Create Reservation",
    description="Book a facility. Tennis within quota is confirmed immediately; "
                "Leobo, Whole Facility and excess bookings wait for approval."
)
async def create_reservation(
    body: BookingRequest,
    actor: Actor = Depends(get_actor),
    service: ReservationService = Depends(get_reservation_service),
) -> dict:
    result = service.create_reservation(body, actor)
    return result.to_dict()


@router.get(
    "/pending",
    summary="List Pending Reservations",
    description="Reservations awaiting a decision by the caller"
)
async def list_pending(
    actor: Actor = Depends(get_actor),
    service: ReservationService = Depends(get_reservation_service),
) -> dict:
    reservations = service.list_pending_reservations(actor)
    return {
        "reservations": [r.to_row() for r in reservations],
        "count": len(reservations)
    }


@router.get(
    "/household/{household_id}",
    summary="List Household Reservations"
)
async def list_household(
    household_id: str = Path(...),
    include_cancelled: bool = Query(True),
    actor: Actor = Depends(get_actor),
    service: ReservationService = Depends(get_reservation_service),
) -> dict:
    reservations = service.list_household_reservations(
        household_id, actor, include_cancelled=include_cancelled
    )
    return {
        "reservations": [r.to_row() for r in reservations],
        "count": len(reservations)
    }


@router.get(
    "/usage/{household_id}",
    summary="Household Usage",
    description="Tennis hours this week and Leobo bookings this month"
)
async def household_usage(
    household_id: str = Path(...),
    on_date: Optional[date] = Query(None, description="Reference date (default today)"),
    actor: Actor = Depends(get_actor),
    service: ReservationService = Depends(get_reservation_service),
) -> dict:
    # Same visibility rule as the household's reservation list
    service.list_household_reservations(household_id, actor)
    return service.usage.get_usage_summary(household_id, on_date)


@router.get("/{reservation_id}", summary="Get Reservation")
async def get_reservation(
    reservation_id: str = Path(...),
    actor: Actor = Depends(get_actor),
    service: ReservationService = Depends(get_reservation_service),
) -> dict:
    reservation = service.get_reservation(reservation_id)
    if not actor.is_approver:
        service.list_household_reservations(reservation.household_id, actor)

    data = reservation.to_row()
    if reservation.has_guests:
        data["guest_list_open"] = (
            not reservation.guest_list_submitted
            and is_guest_list_deadline_met(reservation.event_date, service.calendar)
        )
    return data


# ==========================================
# TRANSITIONS
# ==========================================

@router.post("/{reservation_id}/approve", summary="Approve Reservation")
async def approve_reservation(
    body: Optional[ApprovalRequest] = None,
    reservation_id: str = Path(...),
    actor: Actor = Depends(get_actor),
    service: ReservationService = Depends(get_reservation_service),
) -> dict:
    notes = body.notes if body else None
    reservation = service.approve_reservation(reservation_id, actor, notes)
    return {"success": True, "reservation": reservation.to_row()}


@router.post("/{reservation_id}/deny", summary="Deny Reservation")
async def deny_reservation(
    body: DenialRequest,
    reservation_id: str = Path(...),
    actor: Actor = Depends(get_actor),
    service: ReservationService = Depends(get_reservation_service),
) -> dict:
    reservation = service.deny_reservation(reservation_id, actor, body.reason)
    return {"success": True, "reservation": reservation.to_row()}


@router.post("/{reservation_id}/cancel", summary="Cancel Reservation")
async def cancel_reservation(
    body: Optional[CancellationRequest] = None,
    reservation_id: str = Path(...),
    actor: Actor = Depends(get_actor),
    service: ReservationService = Depends(get_reservation_service),
) -> dict:
    reason = body.reason if body else None
    reservation = service.cancel_reservation(reservation_id, actor, reason)
    return {"success": True, "reservation": reservation.to_row()}


@router.post("/{reservation_id}/bump", summary="Bump Tentative Reservation")
async def bump_reservation(
    body: BumpRequest,
    reservation_id: str = Path(...),
    actor: Actor = Depends(get_actor),
    service: ReservationService = Depends(get_reservation_service),
) -> dict:
    reservation = service.bump_reservation(
        reservation_id, actor, body.bumped_by_household_id, body.reason
    )
    return {"success": True, "reservation": reservation.to_row()}
