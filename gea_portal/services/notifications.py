"""
Notification Service for the GEA Member Portal.

The reservation engine never renders or sends email itself. It queues a
request (template id + recipient + variables) in the notification_queue
table, which the mailer drains.

Queueing is best-effort: a failure here is logged and reported in the
NotificationResult, and never undoes a reservation change that has
already been saved.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Optional, Union

from gea_portal.core.database import get_supabase_client


# Configure logging
logger = logging.getLogger(__name__)


class NotificationStatus(Enum):
    """Notification queue status."""
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


class Templates:
    """Email template ids used by the reservation engine."""
    RESERVATION_CONFIRMED = "tpl_007"  # Auto-confirmed booking, to member
    RESERVATION_PENDING = "tpl_008"  # Acknowledgement, to member
    BOARD_APPROVAL_REQUEST = "tpl_009"  # Other approval requests, to board
    RESERVATION_APPROVED = "tpl_010"
    RESERVATION_DENIED = "tpl_011"
    RESERVATION_CANCELLED = "tpl_012"
    GUEST_LIST_REMINDER = "tpl_013"  # Deadline is tomorrow
    RSO_DAILY_SUMMARY = "tpl_014"
    LEOBO_APPROVAL_REQUEST = "tpl_019"  # Within quota, to MGT
    TENNIS_LIMIT_NOTICE = "tpl_028"  # Excess, to member
    LEOBO_LIMIT_NOTICE = "tpl_029"  # Excess, to member
    TENNIS_EXCESS_REQUEST = "tpl_030"  # Excess, to board
    LEOBO_EXCESS_REQUEST = "tpl_031"  # Excess, to MGT
    JOB_FAILURE_ALERT = "job_failure_alert"  # Scheduler job paused, to board


@dataclass
class NotificationResult:
    """Result of a notification attempt."""
    success: bool
    template_key: str
    recipients: list[str]
    message_id: Optional[str] = None
    error: Optional[str] = None


class NotificationService:
    """Queues templated emails for delivery."""

    QUEUE_TABLE = "notification_queue"

    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        return self._db or get_supabase_client()

    def notify(
        self,
        template_key: str,
        recipients: Union[str, Iterable[str]],
        variables: Optional[dict[str, Any]] = None
    ) -> NotificationResult:
        """
        Queue a templated email.

        Args:
            template_key: Template id (see Templates)
            recipients: One address or several
            variables: Values substituted into the template

        Returns:
            NotificationResult; never raises
        """
        if isinstance(recipients, str):
            recipients = [recipients]
        recipients = [r for r in recipients if r]

        if not recipients:
            logger.warning(f"No recipients for {template_key}; notification skipped")
            return NotificationResult(
                success=False,
                template_key=template_key,
                recipients=[],
                error="no recipients"
            )

        queue_item = {
            "template_key": template_key,
            "recipients": recipients,
            "variables": _stringify(variables or {}),
            "status": NotificationStatus.PENDING.value,
            "queued_at": datetime.now(timezone.utc).isoformat(),
        }

        try:
            response = self.db.client.table(self.QUEUE_TABLE).insert(queue_item).execute()
        except Exception as e:
            logger.error(f"Failed to queue {template_key} for {recipients}: {e}")
            return NotificationResult(
                success=False,
                template_key=template_key,
                recipients=recipients,
                error=str(e)
            )

        message_id = None
        if response.data:
            message_id = response.data[0].get("id")

        logger.info(f"📧 Queued {template_key} for {', '.join(recipients)}")
        return NotificationResult(
            success=True,
            template_key=template_key,
            recipients=recipients,
            message_id=message_id
        )


def _stringify(variables: dict[str, Any]) -> dict[str, Any]:
    """Template variables are stored as JSON; dates become ISO strings."""
    result = {}
    for key, value in variables.items():
        if hasattr(value, "isoformat"):
            value = value.isoformat()
        elif isinstance(value, Enum):
            value = value.value
        result[key] = value
    return result
