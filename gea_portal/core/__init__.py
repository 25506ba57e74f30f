# Core modules - Database, Config, Exceptions
from .database import get_supabase_client
from .config import settings
from .exceptions import (
    PortalException,
    ValidationError,
    AuthorizationError,
    BookingRejectedError,
    ReservationConflictError,
    LimitExceededError,
    InvalidTransitionError,
    RecordNotFoundError,
    DatabaseError,
    ConfigurationError,
    SchedulerJobError,
)

__all__ = [
    "get_supabase_client",
    "settings",
    "PortalException",
    "ValidationError",
    "AuthorizationError",
    "BookingRejectedError",
    "ReservationConflictError",
    "LimitExceededError",
    "InvalidTransitionError",
    "RecordNotFoundError",
    "DatabaseError",
    "ConfigurationError",
    "SchedulerJobError",
]
