# Services - Business Logic Layer
"""
GEA Member Portal Services Module.

This module provides the reservation engine:
- Business day / deadline arithmetic
- Usage accounting, conflict detection and limit policy
- Reservation lifecycle (create, approve, deny, cancel, bump, promote)
- Nightly maintenance and background job scheduling
"""

# Business Day Calculations
from .business_days import (
    HolidayCalendar,
    is_business_day,
    is_weekend,
    is_holiday,
    calculate_business_day_deadline,
    get_guest_list_deadline,
    is_guest_list_deadline_met,
    get_bump_window_deadline,
)

# Record Store
from .store import ReservationStore

# Quota & Conflicts
from .usage import UsageAccounting, week_window, month_window
from .conflicts import ConflictDetector, intervals_overlap
from .limits import LimitCheckResult, LimitPolicy

# Sinks
from .notifications import (
    NotificationStatus,
    NotificationResult,
    NotificationService,
    Templates,
)
from .audit import AuditLog

# Reservation Lifecycle
from .reservations import (
    TRANSITIONS,
    BookingResult,
    ReservationService,
    can_transition,
)

# Nightly Maintenance
from .maintenance import (
    MaintenanceTask,
    MaintenanceReport,
    NIGHTLY_TASKS,
    run_nightly_maintenance,
    send_rso_daily_summary,
)

# Background Job Scheduler
from .scheduler import (
    PortalScheduler,
    get_scheduler
)


__all__ = [
    # Business Days
    "HolidayCalendar",
    "is_business_day",
    "is_weekend",
    "is_holiday",
    "calculate_business_day_deadline",
    "get_guest_list_deadline",
    "is_guest_list_deadline_met",
    "get_bump_window_deadline",

    # Store
    "ReservationStore",

    # Quota & Conflicts
    "UsageAccounting",
    "week_window",
    "month_window",
    "ConflictDetector",
    "intervals_overlap",
    "LimitCheckResult",
    "LimitPolicy",

    # Sinks
    "NotificationStatus",
    "NotificationResult",
    "NotificationService",
    "Templates",
    "AuditLog",

    # Lifecycle
    "TRANSITIONS",
    "BookingResult",
    "ReservationService",
    "can_transition",

    # Maintenance
    "MaintenanceTask",
    "MaintenanceReport",
    "NIGHTLY_TASKS",
    "run_nightly_maintenance",
    "send_rso_daily_summary",

    # Scheduler
    "PortalScheduler",
    "get_scheduler",
]
