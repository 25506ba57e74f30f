"""
Nightly maintenance for the reservation engine.

The nightly batch is a list of independent tasks run in order. Each task
runs inside its own error boundary: a failure is logged and recorded in the
report, and the remaining tasks still run.

Tasks:
1. Guest list reminders: members whose guest list is due tomorrow
2. Bump window promotion: Tentative -> Confirmed once the window has passed

The RSO daily summary runs as its own morning job.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Optional

from gea_portal.core.config import settings
from gea_portal.models.enums import ReservationStatus

from .business_days import local_today
from .notifications import Templates
from .reservations import ReservationService, format_date, format_time


logger = logging.getLogger(__name__)


@dataclass
class MaintenanceTask:
    """A named nightly task. run(service, today) returns a JSON-able result."""
    name: str
    run: Callable[[ReservationService, date], Any]


@dataclass
class TaskOutcome:
    name: str
    success: bool
    result: Any = None
    error: Optional[str] = None


@dataclass
class MaintenanceReport:
    """What happened in one nightly run."""
    run_date: date
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    outcomes: list[TaskOutcome] = field(default_factory=list)

    @property
    def failed(self) -> list[TaskOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def success(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_date": self.run_date.isoformat(),
            "started_at": self.started_at.isoformat(),
            "success": self.success,
            "tasks": [
                {
                    "name": o.name,
                    "success": o.success,
                    "result": o.result,
                    "error": o.error,
                }
                for o in self.outcomes
            ],
        }


# ==========================================
# TASKS
# ==========================================

def send_guest_list_reminders(service: ReservationService, today: date) -> dict[str, Any]:
    """
    Remind members whose guest list deadline is tomorrow.

    Skips reservations without guests, with the list already submitted,
    or cancelled.
    """
    tomorrow = today + timedelta(days=1)
    reservations = service.store.list_reservations(date_from=tomorrow)

    sent = 0
    skipped = 0
    for reservation in reservations:
        if not reservation.has_guests or reservation.guest_list_submitted:
            continue
        if reservation.status == ReservationStatus.CANCELLED:
            continue
        if reservation.guest_list_deadline != tomorrow:
            continue
        if not reservation.primary_email:
            skipped += 1
            continue

        primary = service.store.get_primary_member(reservation.household_id)
        result = service.notifier.notify(Templates.GUEST_LIST_REMINDER, reservation.primary_email, {
            "FIRST_NAME": primary.first_name if primary else "",
            "FACILITY": reservation.facility.value,
            "RESERVATION_DATE": format_date(reservation.event_date),
            "START_TIME": format_time(reservation.start_time),
            "END_TIME": format_time(reservation.end_time),
            "EVENT_NAME": reservation.event_name or "",
            "GUEST_LIST_DEADLINE": format_date(tomorrow),
        })
        if result.success:
            sent += 1
            logger.info(
                f"Guest list reminder sent: {reservation.primary_email} "
                f"for {reservation.reservation_id}"
            )
        else:
            skipped += 1

    return {"sent": sent, "skipped": skipped}


def promote_expired_bump_windows(service: ReservationService, today: date) -> dict[str, Any]:
    promoted = service.promote_expired_bump_windows(today)
    return {"promoted": len(promoted), "reservation_ids": promoted}


NIGHTLY_TASKS: list[MaintenanceTask] = [
    MaintenanceTask("guest_list_reminders", send_guest_list_reminders),
    MaintenanceTask("bump_window_promotion", promote_expired_bump_windows),
]


def run_nightly_maintenance(
    service: Optional[ReservationService] = None,
    today: Optional[date] = None,
    tasks: Optional[list[MaintenanceTask]] = None
) -> MaintenanceReport:
    """
    Run every nightly task in order, each in its own error boundary.

    A fresh ReservationService (and so a fresh HolidayCalendar) is used
    per run unless one is passed in.
    """
    service = service or ReservationService()
    today = today or local_today()
    report = MaintenanceReport(run_date=today)

    logger.info(f"=== Nightly tasks starting: {today.isoformat()} ===")
    for task in (tasks if tasks is not None else NIGHTLY_TASKS):
        logger.info(f"{task.name}: running...")
        try:
            result = task.run(service, today)
        except Exception as e:
            logger.exception(f"❌ Nightly task {task.name} failed: {e}")
            report.outcomes.append(TaskOutcome(task.name, success=False, error=str(e)))
            continue
        report.outcomes.append(TaskOutcome(task.name, success=True, result=result))
    logger.info(
        f"=== Nightly tasks complete: {len(report.outcomes) - len(report.failed)} ok, "
        f"{len(report.failed)} failed ==="
    )

    return report


# ==========================================
# RSO DAILY SUMMARY
# ==========================================

def build_rso_summary(service: ReservationService, today: date) -> dict[str, Any]:
    """Template variables for the RSO daily summary (tpl_014)."""
    reservations = service.store.list_reservations(
        date_from=today, date_to=today + timedelta(days=1)
    )
    reservations = [r for r in reservations if r.status != ReservationStatus.CANCELLED]
    reservations.sort(key=lambda r: r.start_time)

    lines: list[str] = []
    total_members = 0
    total_guests = 0

    for number, reservation in enumerate(reservations, start=1):
        household = service.store.get_household(reservation.household_id)
        attending = [
            m for m in service.store.get_members(reservation.household_id)
            if not m.is_staff
        ]

        lines.append(f"--- RESERVATION #{number} ---")
        lines.append(f"Facility: {reservation.facility.value}")
        lines.append(
            f"Time: {format_time(reservation.start_time)} - {format_time(reservation.end_time)}"
        )
        if reservation.event_name:
            lines.append(f"Event: {reservation.event_name}")
        lines.append(
            f"Reserved By: {household.household_name if household else reservation.household_id}"
        )
        lines.append(f"Contact: {reservation.primary_email or ''}")
        if household:
            lines.append(
                f"Membership: {household.membership_type or ''} - {household.household_type or ''}"
            )
        lines.append("Household Attending: " + ", ".join(
            m.full_name + (f" (age {m.age_on(today)})" if m.date_of_birth else "")
            for m in attending
        ))
        if reservation.has_guests:
            lines.append(f"Guests: {reservation.guest_count} guests")
            total_guests += reservation.guest_count
        else:
            lines.append("Guests: None")
        lines.append("")
        total_members += len(attending)

    return {
        "TODAY_DATE": format_date(today),
        "IF_NO_RESERVATIONS": "" if reservations else "true",
        "RESERVATIONS_BLOCK": "\n".join(lines),
        "TOTAL_RESERVATIONS": len(reservations),
        "TOTAL_MEMBERS": total_members,
        "TOTAL_GUESTS": total_guests,
        "TOTAL_VENDORS": 0,
    }


def send_rso_daily_summary(
    service: Optional[ReservationService] = None,
    today: Optional[date] = None
) -> dict[str, Any]:
    """Send today's reservation summary to the RSO."""
    service = service or ReservationService()
    today = today or local_today()

    variables = build_rso_summary(service, today)
    result = service.notifier.notify(Templates.RSO_DAILY_SUMMARY, settings.email_rso, variables)

    logger.info(f"RSO summary queued: {variables['TOTAL_RESERVATIONS']} reservation(s)")
    return {
        "reservations": variables["TOTAL_RESERVATIONS"],
        "members": variables["TOTAL_MEMBERS"],
        "guests": variables["TOTAL_GUESTS"],
        "queued": result.success,
    }
