"""
Limit Policy.

Decides whether a booking request is allowed, and whether it is an excess
booking that needs review:

- Tennis: a session longer than TENNIS_SESSION_MAX_HOURS is refused.
  Once the household has used TENNIS_WEEKLY_LIMIT_HOURS this week, further
  bookings are allowed but flagged excess (board review).
- Leobo / Whole Facility: a reservation longer than LEOBO_MAX_HOURS is
  refused. Once the household has LEOBO_MONTHLY_LIMIT reservations this
  month, further bookings are allowed but flagged excess (MGT review).

Excess is a successful outcome, never an error.
"""
import logging
from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Optional

from gea_portal.core.config import settings
from gea_portal.models.enums import Facility

from .usage import UsageAccounting


logger = logging.getLogger(__name__)


def tennis_limit_message() -> str:
    return (
        "Your household has reached the weekly tennis court booking limit of "
        f"{settings.tennis_weekly_limit_hours:g} hours. "
        "Additional bookings this week require board approval."
    )


def leobo_limit_message() -> str:
    return (
        "Your household has reached the monthly leobo booking limit. "
        "Additional bookings this month require Management Officer approval."
    )


@dataclass
class LimitCheckResult:
    """Outcome of a limit check."""
    allowed: bool
    is_excess: bool
    reason: str = ""
    hours_used: float = 0
    hours_limit: float = 0
    count_used: Optional[int] = None
    count_limit: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class LimitPolicy:
    """Per-facility hard and soft caps."""

    def __init__(self, usage: Optional[UsageAccounting] = None):
        self.usage = usage or UsageAccounting()

    def check_reservation_limits(
        self,
        household_id: str,
        facility: Facility,
        event_date: date,
        duration_hours: float
    ) -> LimitCheckResult:
        if facility == Facility.TENNIS:
            return self._check_tennis(household_id, event_date, duration_hours)

        if facility.is_leobo_group:
            return self._check_leobo(household_id, event_date, duration_hours)

        logger.warning(f"No limit rule for facility {facility}; allowing booking")
        return LimitCheckResult(allowed=True, is_excess=False)

    def _check_tennis(
        self,
        household_id: str,
        event_date: date,
        duration_hours: float
    ) -> LimitCheckResult:
        hours_used = self.usage.get_tennis_hours_this_week(household_id, event_date)
        hours_limit = settings.tennis_weekly_limit_hours

        if duration_hours > settings.tennis_session_max_hours:
            return LimitCheckResult(
                allowed=False,
                is_excess=False,
                reason=(
                    "A single tennis session cannot exceed "
                    f"{settings.tennis_session_max_hours:g} hours."
                ),
                hours_used=hours_used,
                hours_limit=hours_limit,
            )

        if hours_used >= hours_limit:
            return LimitCheckResult(
                allowed=True,
                is_excess=True,
                reason=tennis_limit_message(),
                hours_used=hours_used,
                hours_limit=hours_limit,
            )

        return LimitCheckResult(
            allowed=True,
            is_excess=False,
            hours_used=hours_used,
            hours_limit=hours_limit,
        )

    def _check_leobo(
        self,
        household_id: str,
        event_date: date,
        duration_hours: float
    ) -> LimitCheckResult:
        count_used = self.usage.get_leobo_reservations_this_month(household_id, event_date)
        hours_used = self.usage.get_leobo_hours_this_month(household_id, event_date)
        count_limit = settings.leobo_monthly_limit
        hours_limit = settings.leobo_max_hours

        if duration_hours > hours_limit:
            return LimitCheckResult(
                allowed=False,
                is_excess=False,
                reason=f"A single leobo reservation cannot exceed {hours_limit:g} hours.",
                hours_used=hours_used,
                hours_limit=hours_limit,
                count_used=count_used,
                count_limit=count_limit,
            )

        return LimitCheckResult(
            allowed=True,
            is_excess=count_used >= count_limit,
            reason=leobo_limit_message() if count_used >= count_limit else "",
            hours_used=hours_used,
            hours_limit=hours_limit,
            count_used=count_used,
            count_limit=count_limit,
        )
