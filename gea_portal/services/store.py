"""
Record Store for the reservation engine.

Reads households, members and reservations from Supabase and maps each row
into a typed record. All writes to the reservations table go through here so
that last_modified_date is always stamped and status changes are conditional
on the status the caller last saw.
"""
import logging
from datetime import date, datetime, timezone
from typing import Any, Iterable, Optional

from gea_portal.core.database import get_supabase_client
from gea_portal.core.exceptions import DatabaseError
from gea_portal.models.enums import Facility, Relationship, ReservationStatus
from gea_portal.models.schemas import Household, Member, Reservation


logger = logging.getLogger(__name__)

HOUSEHOLDS_TABLE = "households"
MEMBERS_TABLE = "members"
RESERVATIONS_TABLE = "reservations"


# ==========================================
# ROW MAPPERS
# ==========================================

def _clean(value: Any) -> Any:
    """Blank cells come back as empty strings; treat them as missing."""
    if isinstance(value, str) and value.strip() == "":
        return None
    return value


def map_household(row: dict) -> Household:
    """Build a Household from a households row."""
    return Household(
        household_id=row["household_id"],
        household_name=_clean(row.get("household_name")) or row["household_id"],
        membership_type=_clean(row.get("membership_type")),
        household_type=_clean(row.get("household_type")),
        active=bool(row.get("active", True)),
        expiration_date=_clean(row.get("expiration_date")),
        primary_email=_clean(row.get("primary_email")),
        primary_phone=_clean(row.get("primary_phone")),
    )


def map_member(row: dict) -> Member:
    """Build a Member from a members row."""
    return Member(
        individual_id=row["individual_id"],
        household_id=row["household_id"],
        first_name=_clean(row.get("first_name")) or "",
        last_name=_clean(row.get("last_name")) or "",
        email=_clean(row.get("email")),
        relationship_to_primary=_clean(row.get("relationship_to_primary")) or "Primary",
        date_of_birth=_clean(row.get("date_of_birth")),
        active=bool(row.get("active", True)),
    )


def map_reservation(row: dict) -> Reservation:
    """Build a Reservation from a reservations row, ignoring unknown columns."""
    values = {
        name: _clean(row.get(name))
        for name in Reservation.model_fields
        if _clean(row.get(name)) is not None
    }
    return Reservation.model_validate(values)


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ReservationStore:
    """
    Typed access to the portal tables.

    Every failure talking to Supabase is raised as DatabaseError so callers
    can tell store problems apart from business-rule rejections.
    """

    def __init__(self, db=None):
        self.db = db or get_supabase_client()

    def _execute(self, query, table: str, operation: str):
        try:
            return query.execute()
        except Exception as e:
            raise DatabaseError(
                table=table,
                operation=operation,
                original_error=str(e)
            ) from e

    # ==========================================
    # HOUSEHOLDS & MEMBERS
    # ==========================================

    def get_household(self, household_id: str) -> Optional[Household]:
        query = self.db.client.table(HOUSEHOLDS_TABLE).select("*").eq(
            "household_id", household_id
        )
        response = self._execute(query, HOUSEHOLDS_TABLE, "select")
        return map_household(response.data[0]) if response.data else None

    def get_members(self, household_id: str, active_only: bool = True) -> list[Member]:
        query = self.db.client.table(MEMBERS_TABLE).select("*").eq(
            "household_id", household_id
        )
        response = self._execute(query, MEMBERS_TABLE, "select")
        members = [map_member(row) for row in (response.data or [])]
        if active_only:
            members = [m for m in members if m.active]
        return members

    def find_member_by_email(self, email: str) -> Optional[Member]:
        query = self.db.client.table(MEMBERS_TABLE).select("*").eq(
            "email", email.strip().lower()
        )
        response = self._execute(query, MEMBERS_TABLE, "select")
        return map_member(response.data[0]) if response.data else None

    def get_primary_member(self, household_id: str) -> Optional[Member]:
        members = self.get_members(household_id)
        for member in members:
            if member.relationship_to_primary == Relationship.PRIMARY:
                return member
        return members[0] if members else None

    # ==========================================
    # RESERVATIONS
    # ==========================================

    def get_reservation(self, reservation_id: str) -> Optional[Reservation]:
        query = self.db.client.table(RESERVATIONS_TABLE).select("*").eq(
            "reservation_id", reservation_id
        )
        response = self._execute(query, RESERVATIONS_TABLE, "select")
        return map_reservation(response.data[0]) if response.data else None

    def insert_reservation(self, reservation: Reservation) -> Reservation:
        row = reservation.to_row()
        row["created_date"] = row.get("created_date") or _utcnow_iso()
        row["last_modified_date"] = row["created_date"]

        query = self.db.client.table(RESERVATIONS_TABLE).insert(row)
        response = self._execute(query, RESERVATIONS_TABLE, "insert")
        if not response.data:
            raise DatabaseError(
                table=RESERVATIONS_TABLE,
                operation="insert",
                original_error="insert returned no rows"
            )
        return map_reservation(response.data[0])

    def update_status(
        self,
        reservation_id: str,
        expected_status: ReservationStatus,
        new_status: ReservationStatus,
        changes: Optional[dict[str, Any]] = None
    ) -> Optional[Reservation]:
        """
        Move a reservation to a new status if it is still in expected_status.

        Returns the updated record, or None when no row matched (the
        reservation changed underneath the caller).
        """
        update_data = {k: _to_json(v) for k, v in (changes or {}).items()}
        update_data["status"] = new_status.value
        update_data["last_modified_date"] = _utcnow_iso()

        query = self.db.client.table(RESERVATIONS_TABLE).update(update_data).eq(
            "reservation_id", reservation_id
        ).eq("status", expected_status.value)
        response = self._execute(query, RESERVATIONS_TABLE, "update")

        if not response.data:
            logger.info(
                f"Conditional update skipped for {reservation_id}: "
                f"status is no longer {expected_status.value}"
            )
            return None
        return map_reservation(response.data[0])

    def list_reservations(
        self,
        household_id: Optional[str] = None,
        facilities: Optional[Iterable[Facility]] = None,
        statuses: Optional[Iterable[ReservationStatus]] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Reservation]:
        """
        Query reservations.

        date_from is inclusive and date_to is exclusive, both on event_date.
        """
        query = self.db.client.table(RESERVATIONS_TABLE).select("*")

        if household_id:
            query = query.eq("household_id", household_id)
        if facilities is not None:
            query = query.in_("facility", [f.value for f in facilities])
        if statuses is not None:
            query = query.in_("status", [s.value for s in statuses])
        if date_from:
            query = query.gte("event_date", date_from.isoformat())
        if date_to:
            query = query.lt("event_date", date_to.isoformat())

        response = self._execute(query.order("event_date"), RESERVATIONS_TABLE, "select")
        return [map_reservation(row) for row in (response.data or [])]


def _to_json(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, (Facility, ReservationStatus)):
        return value.value
    return value
