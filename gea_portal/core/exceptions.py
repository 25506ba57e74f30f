"""
Custom exceptions for the GEA Member Portal.
Provides meaningful error types for different failure scenarios.

Taxonomy:
- ValidationError: malformed request, caught before business logic
- BookingRejectedError: business-rule rejection (conflict, hard cap)
- AuthorizationError: actor lacks the required role
- DatabaseError: record store failure, reported without internal detail
"""
import logging
from typing import Any, Optional


logger = logging.getLogger(__name__)


class PortalException(Exception):
    """Base exception for all portal errors."""

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        status_code: int = 500
    ):
        self.message = message
        self.details = details or {}
        self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API response."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(PortalException):
    """Raised when request validation fails."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)

        super().__init__(message, details, status_code=422)


class AuthorizationError(PortalException):
    """Raised when the actor is not allowed to perform an operation."""

    def __init__(
        self,
        message: str = (
            "You are not authorized to perform this action. "
            "Please contact board@geabotswana.org if you believe this is an error."
        ),
        actor: Optional[str] = None,
        operation: Optional[str] = None
    ):
        details = {}
        if actor:
            details["actor"] = actor
        if operation:
            details["operation"] = operation

        super().__init__(message, details, status_code=403)


class BookingRejectedError(PortalException):
    """Raised when a booking request breaks a business rule."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message, details, status_code=409)


class ReservationConflictError(BookingRejectedError):
    """Raised when the requested slot overlaps an active reservation."""

    def __init__(
        self,
        facility: str,
        start_time: Any,
        end_time: Any,
        message: str = (
            "This time slot is already reserved. "
            "Please choose a different date or time."
        )
    ):
        super().__init__(message, {
            "facility": facility,
            "start_time": str(start_time),
            "end_time": str(end_time),
        })


class LimitExceededError(BookingRejectedError):
    """Raised when a request breaks a hard cap (session/reservation length)."""

    def __init__(self, message: str, limit_check: Optional[dict[str, Any]] = None):
        super().__init__(message, {"limit_check": limit_check or {}})


class InvalidTransitionError(PortalException):
    """Raised when a reservation cannot move from its current status."""

    def __init__(
        self,
        reservation_id: str,
        current_status: str,
        target_status: str,
        message: Optional[str] = None
    ):
        message = message or (
            f"Cannot move reservation {reservation_id} "
            f"from {current_status} to {target_status}"
        )
        super().__init__(message, {
            "reservation_id": reservation_id,
            "current_status": current_status,
            "target_status": target_status,
        }, status_code=409)


class RecordNotFoundError(PortalException):
    """Raised when a requested record doesn't exist."""

    def __init__(self, record_type: str, record_id: str):
        super().__init__(
            f"{record_type} not found: {record_id}",
            {"record_type": record_type, "record_id": record_id},
            status_code=404
        )


class DatabaseError(PortalException):
    """
    Raised when record store operations fail.

    The original error is logged here and kept on the instance,
    but never included in the client-facing payload.
    """

    def __init__(
        self,
        message: str = "Failed to save reservation. Please try again.",
        table: Optional[str] = None,
        operation: Optional[str] = None,
        original_error: Optional[str] = None
    ):
        self.table = table
        self.operation = operation
        self.original_error = original_error

        logger.error(
            f"Database error on {table or 'unknown table'} "
            f"({operation or 'unknown operation'}): {original_error}"
        )

        super().__init__(message, {}, status_code=500)


class ConfigurationError(PortalException):
    """Raised when configuration or reference data is invalid."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        details = {"config_key": config_key} if config_key else {}
        super().__init__(message, details, status_code=500)


class SchedulerJobError(PortalException):
    """Raised when a scheduled job fails."""

    def __init__(self, job_id: str, message: str):
        super().__init__(
            f"Scheduler job '{job_id}' failed: {message}",
            {"job_id": job_id},
            status_code=500
        )
