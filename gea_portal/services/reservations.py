"""
Reservation Lifecycle.

Owns every status change a reservation goes through:

    create   -> Confirmed (Tennis within quota)
             -> Pending   (Leobo / Whole Facility, or any excess booking)
    approve  Pending -> Tentative (excess) | Confirmed
    deny     Pending -> Cancelled
    cancel   any non-terminal -> Cancelled
    bump     Tentative -> Cancelled (board, while the bump window is open)
    promote  Tentative -> Confirmed (nightly, once the bump window has passed)

Creation runs conflict-check-then-insert under a per-facility lock.
Transitions run under a per-reservation lock and write conditionally on the
status that was read, so a concurrent change makes the second writer fail
with InvalidTransitionError instead of overwriting.

Audit entries and notifications are sent after the change is saved; their
failures are logged and never undo the change.
"""
import logging
import random
import threading
import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Generator, Optional

from gea_portal.core.config import settings
from gea_portal.core.exceptions import (
    AuthorizationError,
    InvalidTransitionError,
    LimitExceededError,
    RecordNotFoundError,
    ReservationConflictError,
    ValidationError,
)
from gea_portal.models.enums import (
    ActorRole,
    AuditAction,
    Facility,
    LEOBO_GROUP,
    ReservationStatus,
)
from gea_portal.models.schemas import (
    Actor,
    BookingRequest,
    Household,
    Reservation,
    SYSTEM_ACTOR,
)

from .audit import AuditLog
from .business_days import (
    HolidayCalendar,
    get_bump_window_deadline,
    get_guest_list_deadline,
    local_now,
    local_today,
    portal_timezone,
)
from .conflicts import ConflictDetector
from .limits import LimitCheckResult, LimitPolicy
from .notifications import NotificationService, Templates
from .store import ReservationStore
from .usage import UsageAccounting, week_window


logger = logging.getLogger(__name__)


# ==========================================
# STATE MACHINE
# ==========================================

TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    ReservationStatus.PENDING: frozenset({
        ReservationStatus.APPROVED,
        ReservationStatus.TENTATIVE,
        ReservationStatus.CONFIRMED,
        ReservationStatus.CANCELLED,
    }),
    ReservationStatus.APPROVED: frozenset({
        ReservationStatus.CONFIRMED,
        ReservationStatus.CANCELLED,
    }),
    ReservationStatus.TENTATIVE: frozenset({
        ReservationStatus.CONFIRMED,
        ReservationStatus.CANCELLED,
    }),
    ReservationStatus.CONFIRMED: frozenset({ReservationStatus.CANCELLED}),
    ReservationStatus.WAITLISTED: frozenset({ReservationStatus.CANCELLED}),
    ReservationStatus.CANCELLED: frozenset(),
    ReservationStatus.COMPLETED: frozenset(),
}


def can_transition(current: ReservationStatus, target: ReservationStatus) -> bool:
    return target in TRANSITIONS[current]


def assert_valid_transition(reservation: Reservation, target: ReservationStatus) -> None:
    """Raise InvalidTransitionError unless the table allows current -> target."""
    if not can_transition(reservation.status, target):
        if reservation.status.is_terminal:
            message = (
                f"Reservation {reservation.reservation_id} is already "
                f"{reservation.status.value}"
            )
        else:
            message = None
        raise InvalidTransitionError(
            reservation.reservation_id,
            reservation.status.value,
            target.value,
            message=message
        )


# ==========================================
# LOCKING
# ==========================================

class KeyedLocks:
    """One lock per key, created on first use."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = defaultdict(threading.Lock)

    @contextmanager
    def hold(self, key: str) -> Generator[None, None, None]:
        with self._guard:
            lock = self._locks[key]
        with lock:
            yield


# Process-wide serialization points
facility_locks = KeyedLocks()
reservation_locks = KeyedLocks()


# ==========================================
# HELPERS
# ==========================================

def generate_reservation_id(prefix: str = "RES") -> str:
    """PREFIX-YEAR-xxxxxxxxxx (5 timestamp digits + 4 random digits)."""
    year = local_today().year
    stamp = str(int(time.time() * 1000))[-5:]
    return f"{prefix}-{year}-{stamp}{random.randint(1000, 9999)}"


def format_date(value: date) -> str:
    """e.g. 'Saturday, March 15, 2026'."""
    return f"{value.strftime('%A, %B')} {value.day}, {value.year}"


def format_time(value: datetime) -> str:
    """e.g. '2:30 PM' in the portal timezone."""
    local = value.astimezone(portal_timezone())
    return local.strftime("%I:%M %p").lstrip("0")


@dataclass
class BookingResult:
    """Outcome of a successful booking request."""
    reservation: Reservation
    limit_check: LimitCheckResult
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "reservation_id": self.reservation.reservation_id,
            "status": self.reservation.status.value,
            "is_excess": self.reservation.is_excess_reservation,
            "message": self.message,
            "reservation": self.reservation.to_row(),
            "limit_check": self.limit_check.to_dict(),
        }


class ReservationService:
    """
    Booking and status transitions for facility reservations.

    Construct one per request or batch run; it carries that run's
    HolidayCalendar.
    """

    def __init__(
        self,
        store: Optional[ReservationStore] = None,
        notifier: Optional[NotificationService] = None,
        audit: Optional[AuditLog] = None,
        calendar: Optional[HolidayCalendar] = None,
    ):
        self.store = store or ReservationStore()
        self.notifier = notifier or NotificationService(self.store.db)
        self.audit = audit or AuditLog(self.store.db)
        self.calendar = calendar or HolidayCalendar(self.store.db)
        self.usage = UsageAccounting(self.store)
        self.conflicts = ConflictDetector(self.store)
        self.limits = LimitPolicy(self.usage)

    # ==========================================
    # READS
    # ==========================================

    def get_reservation(self, reservation_id: str) -> Reservation:
        reservation = self.store.get_reservation(reservation_id)
        if reservation is None:
            raise RecordNotFoundError("Reservation", reservation_id)
        return reservation

    def list_pending_reservations(self, actor: Actor) -> list[Reservation]:
        """Pending reservations the actor is allowed to decide on."""
        if not actor.is_approver:
            raise AuthorizationError(actor=actor.email, operation="list_pending")

        facilities = LEOBO_GROUP if actor.role == ActorRole.MGT else None
        return self.store.list_reservations(
            facilities=facilities,
            statuses=[ReservationStatus.PENDING],
        )

    def list_household_reservations(
        self,
        household_id: str,
        actor: Actor,
        include_cancelled: bool = True
    ) -> list[Reservation]:
        if not actor.is_approver and self._actor_household_id(actor) != household_id:
            raise AuthorizationError(actor=actor.email, operation="list_household")

        reservations = self.store.list_reservations(household_id=household_id)
        if not include_cancelled:
            reservations = [
                r for r in reservations if r.status != ReservationStatus.CANCELLED
            ]
        return reservations

    # ==========================================
    # CREATION
    # ==========================================

    def create_reservation(self, request: BookingRequest, actor: Actor) -> BookingResult:
        """
        Validate, check conflicts and limits, then save a new reservation.

        Raises:
            ValidationError: Past date, inactive household
            AuthorizationError: Staff member, or booking for another household
            ReservationConflictError: Slot overlaps an active reservation
            LimitExceededError: Hard cap exceeded
            DatabaseError: Store failure
        """
        household = self.store.get_household(request.household_id)
        if household is None:
            raise RecordNotFoundError("Household", request.household_id)

        self._check_booking_rights(actor, household)
        self._validate_booking(request, household)

        facility = request.facility
        with facility_locks.hold(facility.value):
            if self.conflicts.has_conflict(facility, request.start_time, request.end_time):
                logger.info(
                    f"Booking rejected for {household.household_id}: {facility.value} "
                    f"{request.start_time.isoformat()} - {request.end_time.isoformat()} "
                    "conflicts with an existing reservation"
                )
                raise ReservationConflictError(
                    facility.value, request.start_time, request.end_time
                )

            limit_check = self.limits.check_reservation_limits(
                household.household_id,
                facility,
                request.event_date,
                request.duration_hours,
            )
            if not limit_check.allowed:
                logger.info(
                    f"Booking rejected for {household.household_id}: {limit_check.reason}"
                )
                raise LimitExceededError(limit_check.reason, limit_check.to_dict())

            reservation = self._build_reservation(request, household, actor, limit_check)
            saved = self.store.insert_reservation(reservation)

        self.audit.record(
            actor.email,
            AuditAction.RESERVATION_CREATED,
            "Reservation",
            saved.reservation_id,
            f"{facility.value} on {format_date(saved.event_date)}",
            metadata={"status": saved.status.value, "is_excess": saved.is_excess_reservation},
        )
        self._send_creation_notifications(saved, household, limit_check)

        logger.info(
            f"Reservation {saved.reservation_id} created for {household.household_id} "
            f"({facility.value}, {saved.status.value}"
            f"{', excess' if saved.is_excess_reservation else ''})"
        )
        return BookingResult(
            reservation=saved,
            limit_check=limit_check,
            message=f"Reservation {saved.reservation_id} created with status: {saved.status.value}",
        )

    def _check_booking_rights(self, actor: Actor, household: Household) -> None:
        member = self.store.find_member_by_email(actor.email)
        if member is not None and member.is_staff:
            raise AuthorizationError(
                "Household staff cannot make reservations.",
                actor=actor.email,
                operation="create",
            )

        if actor.is_approver:
            return

        if member is None or member.household_id != household.household_id:
            raise AuthorizationError(actor=actor.email, operation="create")

    def _validate_booking(self, request: BookingRequest, household: Household) -> None:
        if not household.active:
            raise ValidationError(
                "Your GEA membership is not active. "
                "Please renew your membership to make reservations.",
                field="household_id",
                value=household.household_id,
            )

        if request.event_date < local_today():
            raise ValidationError(
                "Reservations must be for today or a future date.",
                field="event_date",
                value=request.event_date,
            )

    def _build_reservation(
        self,
        request: BookingRequest,
        household: Household,
        actor: Actor,
        limit_check: LimitCheckResult
    ) -> Reservation:
        facility = request.facility
        needs_approval = facility.requires_approval or limit_check.is_excess
        status = ReservationStatus.PENDING if needs_approval else ReservationStatus.CONFIRMED

        bump_deadline = None
        if limit_check.is_excess:
            bump_deadline = get_bump_window_deadline(facility, request.event_date, self.calendar)

        guest_deadline = None
        if request.has_guests:
            guest_deadline = get_guest_list_deadline(request.event_date, self.calendar)

        now = local_now()
        return Reservation(
            reservation_id=generate_reservation_id(),
            household_id=household.household_id,
            household_name=household.household_name,
            primary_email=request.primary_email or household.primary_email or actor.email,
            facility=facility,
            event_date=request.event_date,
            start_time=request.start_time,
            end_time=request.end_time,
            duration_hours=request.duration_hours,
            event_name=request.event_name,
            status=status,
            has_guests=request.has_guests,
            guest_count=request.guest_count if request.has_guests else 0,
            guest_list_deadline=guest_deadline,
            guest_list_submitted=False,
            is_excess_reservation=limit_check.is_excess,
            bump_window_deadline=bump_deadline,
            created_date=now,
            last_modified_date=now,
        )

    # ==========================================
    # TRANSITIONS
    # ==========================================

    def approve_reservation(
        self,
        reservation_id: str,
        actor: Actor,
        notes: Optional[str] = None
    ) -> Reservation:
        """Pending -> Tentative (excess) or Confirmed."""
        with reservation_locks.hold(reservation_id):
            reservation = self.get_reservation(reservation_id)
            self._require_approver(actor, reservation, "approve")
            target = (
                ReservationStatus.TENTATIVE
                if reservation.is_excess_reservation
                else ReservationStatus.CONFIRMED
            )
            self._require_pending(reservation, target, "approved")

            changes = {"approved_by": actor.email, "approved_date": local_now()}
            if notes:
                changes["approval_notes"] = notes
            updated = self._apply_transition(reservation, target, changes)

        self.audit.record(
            actor.email,
            AuditAction.RESERVATION_APPROVED,
            "Reservation",
            reservation_id,
            f"Approved -> {target.value}",
        )
        self._notify_member(updated, Templates.RESERVATION_APPROVED, {
            "APPROVED_BY": actor.email,
            "IF_GUESTS": "true" if updated.has_guests else "",
            "IF_GUEST_LIST_SUBMITTED": "true" if updated.guest_list_submitted else "",
            "IF_GUEST_LIST_PENDING": (
                "true" if updated.has_guests and not updated.guest_list_submitted else ""
            ),
            "GUEST_LIST_DEADLINE": (
                format_date(updated.guest_list_deadline) if updated.guest_list_deadline else ""
            ),
        })
        return updated

    def deny_reservation(
        self,
        reservation_id: str,
        actor: Actor,
        reason: Optional[str] = None
    ) -> Reservation:
        """Pending -> Cancelled."""
        with reservation_locks.hold(reservation_id):
            reservation = self.get_reservation(reservation_id)
            self._require_approver(actor, reservation, "deny")
            self._require_pending(reservation, ReservationStatus.CANCELLED, "denied")

            updated = self._apply_transition(reservation, ReservationStatus.CANCELLED, {
                "denied_by": actor.email,
                "denial_reason": reason or "",
            })

        self.audit.record(
            actor.email,
            AuditAction.RESERVATION_DENIED,
            "Reservation",
            reservation_id,
            f"Denied: {reason or 'no reason given'}",
        )
        self._notify_member(updated, Templates.RESERVATION_DENIED, {
            "DENIAL_REASON": reason or "No reason provided",
        })
        return updated

    def cancel_reservation(
        self,
        reservation_id: str,
        actor: Actor,
        reason: Optional[str] = None
    ) -> Reservation:
        """Any non-terminal status -> Cancelled. Owner household or approver."""
        with reservation_locks.hold(reservation_id):
            reservation = self.get_reservation(reservation_id)
            if not actor.is_approver and self._actor_household_id(actor) != reservation.household_id:
                raise AuthorizationError(actor=actor.email, operation="cancel")

            updated = self._apply_transition(reservation, ReservationStatus.CANCELLED, {
                "cancelled_by": actor.email,
                "cancellation_reason": reason or "",
                "cancellation_date": local_now(),
            })

        self.audit.record(
            actor.email,
            AuditAction.RESERVATION_CANCELLED,
            "Reservation",
            reservation_id,
            f"Cancelled: {reason or 'no reason given'}",
        )
        self._notify_member(updated, Templates.RESERVATION_CANCELLED, {
            "CANCELLED_BY": actor.email,
            "IF_REASON": "true" if reason else "",
            "CANCELLATION_REASON": reason or "",
            "IF_BOARD_CANCELLED": "true" if actor.email != updated.primary_email else "",
        })
        return updated

    def bump_reservation(
        self,
        reservation_id: str,
        actor: Actor,
        bumped_by_household_id: str,
        reason: Optional[str] = None
    ) -> Reservation:
        """
        Displace a Tentative (excess) reservation while its bump window is open.

        Board only. The reservation is cancelled and the displacing
        household recorded.
        """
        if actor.role != ActorRole.BOARD:
            raise AuthorizationError(actor=actor.email, operation="bump")

        today = local_today()
        with reservation_locks.hold(reservation_id):
            reservation = self.get_reservation(reservation_id)
            if reservation.status != ReservationStatus.TENTATIVE:
                raise InvalidTransitionError(
                    reservation_id,
                    reservation.status.value,
                    ReservationStatus.CANCELLED.value,
                    message="Only tentative (excess) reservations can be bumped",
                )
            if reservation.bump_window_deadline is None or today > reservation.bump_window_deadline:
                raise InvalidTransitionError(
                    reservation_id,
                    reservation.status.value,
                    ReservationStatus.CANCELLED.value,
                    message=f"The bump window for {reservation_id} has closed",
                )

            reason = reason or f"Bumped by household {bumped_by_household_id}"
            now = local_now()
            updated = self._apply_transition(reservation, ReservationStatus.CANCELLED, {
                "bumped_by_household_id": bumped_by_household_id,
                "bumped_date": now,
                "cancelled_by": actor.email,
                "cancellation_reason": reason,
                "cancellation_date": now,
            })

        self.audit.record(
            actor.email,
            AuditAction.RESERVATION_BUMPED,
            "Reservation",
            reservation_id,
            f"Bumped by {bumped_by_household_id}",
        )
        self._notify_member(updated, Templates.RESERVATION_CANCELLED, {
            "CANCELLED_BY": actor.email,
            "IF_REASON": "true",
            "CANCELLATION_REASON": reason,
            "IF_BOARD_CANCELLED": "true",
        })
        return updated

    def promote_expired_bump_windows(self, today: Optional[date] = None) -> list[str]:
        """
        Confirm every Tentative reservation whose bump window has passed.

        A reservation is promoted once today is strictly after its
        bump_window_deadline. Running twice on the same day promotes nothing
        the second time.

        Returns:
            Ids of the promoted reservations
        """
        today = today or local_today()
        tentative = self.store.list_reservations(statuses=[ReservationStatus.TENTATIVE])

        promoted = []
        for reservation in tentative:
            if reservation.bump_window_deadline is None:
                continue
            if not today > reservation.bump_window_deadline:
                continue

            with reservation_locks.hold(reservation.reservation_id):
                updated = self.store.update_status(
                    reservation.reservation_id,
                    ReservationStatus.TENTATIVE,
                    ReservationStatus.CONFIRMED,
                )
            if updated is None:
                continue

            self.audit.record(
                SYSTEM_ACTOR.email,
                AuditAction.RESERVATION_APPROVED,
                "Reservation",
                reservation.reservation_id,
                "Auto-confirmed: bump window passed",
            )
            logger.info(f"Auto-confirmed: {reservation.reservation_id}")
            promoted.append(reservation.reservation_id)

        return promoted

    # ==========================================
    # INTERNALS
    # ==========================================

    def _actor_household_id(self, actor: Actor) -> Optional[str]:
        """Household of the calling member, looked up by email."""
        member = self.store.find_member_by_email(actor.email)
        return member.household_id if member else None

    def _require_approver(self, actor: Actor, reservation: Reservation, operation: str) -> None:
        """Board may decide on anything; MGT only on Leobo / Whole Facility."""
        if actor.role == ActorRole.BOARD:
            return
        if actor.role == ActorRole.MGT and reservation.facility.is_leobo_group:
            return
        raise AuthorizationError(actor=actor.email, operation=operation)

    def _require_pending(
        self,
        reservation: Reservation,
        target: ReservationStatus,
        verb: str
    ) -> None:
        if reservation.status != ReservationStatus.PENDING:
            raise InvalidTransitionError(
                reservation.reservation_id,
                reservation.status.value,
                target.value,
                message=(
                    f"Only pending reservations can be {verb} "
                    f"(current status: {reservation.status.value})"
                ),
            )

    def _apply_transition(
        self,
        reservation: Reservation,
        target: ReservationStatus,
        changes: Optional[dict[str, Any]] = None
    ) -> Reservation:
        assert_valid_transition(reservation, target)

        updated = self.store.update_status(
            reservation.reservation_id, reservation.status, target, changes
        )
        if updated is None:
            raise InvalidTransitionError(
                reservation.reservation_id,
                reservation.status.value,
                target.value,
                message=(
                    f"Reservation {reservation.reservation_id} was changed by another "
                    "request. Please reload and try again."
                ),
            )
        return updated

    # ==========================================
    # NOTIFICATIONS
    # ==========================================

    def _base_variables(self, reservation: Reservation) -> dict[str, Any]:
        primary = self.store.get_primary_member(reservation.household_id)
        return {
            "FIRST_NAME": primary.first_name if primary else "",
            "FULL_NAME": reservation.household_name or "",
            "MEMBER_EMAIL": reservation.primary_email or "",
            "FACILITY": reservation.facility.value,
            "RESERVATION_DATE": format_date(reservation.event_date),
            "START_TIME": format_time(reservation.start_time),
            "END_TIME": format_time(reservation.end_time),
            "EVENT_NAME": reservation.event_name or "",
            "RESERVATION_ID": reservation.reservation_id,
        }

    def _notify_member(
        self,
        reservation: Reservation,
        template_key: str,
        extra: dict[str, Any]
    ) -> None:
        try:
            variables = {**self._base_variables(reservation), **extra}
        except Exception as e:
            logger.error(f"Could not build {template_key} for {reservation.reservation_id}: {e}")
            return
        self.notifier.notify(template_key, reservation.primary_email, variables)

    def _send_creation_notifications(
        self,
        reservation: Reservation,
        household: Household,
        limit_check: LimitCheckResult
    ) -> None:
        try:
            base = self._base_variables(reservation)
        except Exception as e:
            logger.error(f"Could not build notifications for {reservation.reservation_id}: {e}")
            return

        base.update({
            "MEMBER_PHONE": household.primary_phone or "",
            "SUBMISSION_TIMESTAMP": format_date(local_today()),
            "IF_GUESTS": "true" if reservation.has_guests else "",
            "GUEST_COUNT": reservation.guest_count,
            "GUEST_LIST_DEADLINE": (
                format_date(reservation.guest_list_deadline)
                if reservation.guest_list_deadline else ""
            ),
        })
        member_email = reservation.primary_email
        facility = reservation.facility

        if reservation.status == ReservationStatus.CONFIRMED:
            self.notifier.notify(Templates.RESERVATION_CONFIRMED, member_email, base)
            return

        self.notifier.notify(Templates.RESERVATION_PENDING, member_email, {
            **base,
            "APPROVAL_REASON": (
                "your household has exceeded the booking limit"
                if limit_check.is_excess
                else "board and Management Officer approval"
            ),
            "IF_LEOBO": "true" if facility.is_leobo_group else "",
        })

        approval_vars = {
            **base,
            "MEMBERSHIP_LEVEL": household.membership_type or "",
            "MEMBERSHIP_STATUS": "Active" if household.active else "Inactive",
            "HOUSEHOLD_NAME": household.household_name,
            "LEOBO_USAGE": limit_check.count_used or 0,
            "LEOBO_MONTHLY_LIMIT": settings.leobo_monthly_limit,
            "HOURS_USED": limit_check.hours_used,
            "TENNIS_WEEKLY_LIMIT_HOURS": settings.tennis_weekly_limit_hours,
            "LEOBO_MAX_HOURS": settings.leobo_max_hours,
            "BUMP_DEADLINE": (
                format_date(reservation.bump_window_deadline)
                if reservation.bump_window_deadline else ""
            ),
        }

        if limit_check.is_excess and facility == Facility.TENNIS:
            self.notifier.notify(Templates.TENNIS_EXCESS_REQUEST, settings.email_board, approval_vars)
        elif facility.is_leobo_group:
            template = (
                Templates.LEOBO_EXCESS_REQUEST
                if limit_check.is_excess
                else Templates.LEOBO_APPROVAL_REQUEST
            )
            self.notifier.notify(template, settings.email_mgt, approval_vars)
        else:
            self.notifier.notify(Templates.BOARD_APPROVAL_REQUEST, settings.email_board, approval_vars)

        if not limit_check.is_excess:
            return

        if facility == Facility.TENNIS:
            week_start, _ = week_window(reservation.event_date)
            self.notifier.notify(Templates.TENNIS_LIMIT_NOTICE, member_email, {
                **base,
                "WEEK_START": format_date(week_start),
                "WEEK_END": format_date(week_start + timedelta(days=6)),
                "TENNIS_BUMP_WINDOW_DAYS": settings.tennis_bump_window_days,
            })
        else:
            self.notifier.notify(Templates.LEOBO_LIMIT_NOTICE, member_email, {
                **base,
                "CURRENT_MONTH": reservation.event_date.strftime("%B"),
                "LEOBO_USAGE": limit_check.count_used or 0,
                "LEOBO_MAX_HOURS": settings.leobo_max_hours,
                "LEOBO_BUMP_WINDOW_DAYS": settings.leobo_bump_window_days,
            })
