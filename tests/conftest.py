"""
Pytest fixtures and configuration for GEA Member Portal tests.

Provides:
- Mock Supabase client for isolated testing
- Test client with the reservation service wired to the mock
- Time freezing utilities (Africa/Gaborone, UTC+2)
- Factory fixtures for households, members, reservations and holidays
"""
import pytest
from datetime import date, datetime, timedelta, timezone
from typing import Generator, Dict, Any, Optional
from unittest.mock import patch
from uuid import uuid4

from fastapi.testclient import TestClient
from freezegun import freeze_time

# Import the FastAPI app
from gea_portal.main import app
from gea_portal.api.routes.reservation_routes import get_reservation_service
from gea_portal.services.business_days import HolidayCalendar
from gea_portal.services.reservations import ReservationService
from gea_portal.services.store import ReservationStore

from tests.helpers import FROZEN_NOW_UTC, local_dt


# ==========================================
# MOCK SUPABASE RESPONSE & TABLE
# ==========================================

class MockSupabaseResponse:
    """Mock response from Supabase operations."""

    def __init__(self, data: list = None, error: dict = None, count: int = None):
        self.data = data or []
        self.error = error
        self.count = count if count is not None else len(self.data)

    def execute(self):
        return self


class MockNotFilter:
    """Helper class to handle negated filters like .not_.in_()."""

    def __init__(self, table: "MockSupabaseTable"):
        self._table = table

    def in_(self, column: str, values: list):
        self._table._filters.append(("not_in", column, values))
        return self._table

    def eq(self, column: str, value: Any):
        self._table._filters.append(("not_eq", column, value))
        return self._table


class MockSupabaseTable:
    """Mock Supabase table operations."""

    def __init__(self, table_name: str, mock_data: Dict[str, list]):
        self.table_name = table_name
        self.mock_data = mock_data
        self._filters = []
        self._select_fields = "*"
        self._order_by = None
        self._order_desc = False
        self._limit = None

    def select(self, fields: str = "*", count: str = None):
        self._select_fields = fields
        return self

    def eq(self, column: str, value: Any):
        self._filters.append(("eq", column, value))
        return self

    def neq(self, column: str, value: Any):
        self._filters.append(("neq", column, value))
        return self

    def in_(self, column: str, values: list):
        self._filters.append(("in", column, values))
        return self

    def gte(self, column: str, value: Any):
        self._filters.append(("gte", column, value))
        return self

    def gt(self, column: str, value: Any):
        self._filters.append(("gt", column, value))
        return self

    def lte(self, column: str, value: Any):
        self._filters.append(("lte", column, value))
        return self

    def lt(self, column: str, value: Any):
        self._filters.append(("lt", column, value))
        return self

    @property
    def not_(self):
        return MockNotFilter(self)

    def order(self, column: str, desc: bool = False):
        self._order_by = column
        self._order_desc = desc
        return self

    def limit(self, count: int):
        self._limit = count
        return self

    def insert(self, data: Any):
        """Mock insert operation."""
        rows = data if isinstance(data, list) else [data]
        for row in rows:
            if "id" not in row:
                row["id"] = str(uuid4())
        self.mock_data.setdefault(self.table_name, []).extend(rows)
        return MockSupabaseResponse(rows)

    def update(self, data: dict):
        """Mock update operation - returns self for chaining."""
        self._update_data = data
        return self

    def delete(self):
        """Mock delete operation - returns self for chaining."""
        self._delete = True
        return self

    def _apply_filters(self, results: list) -> list:
        """Apply all filters to results. Range filters compare as strings (ISO dates)."""
        for op, column, value in self._filters:
            if op == "eq":
                results = [r for r in results if r.get(column) == value]
            elif op == "neq":
                results = [r for r in results if r.get(column) != value]
            elif op == "in":
                results = [r for r in results if r.get(column) in value]
            elif op == "not_in":
                results = [r for r in results if r.get(column) not in value]
            elif op == "not_eq":
                results = [r for r in results if r.get(column) != value]
            elif op == "gte":
                results = [r for r in results if r.get(column) is not None and str(r[column]) >= str(value)]
            elif op == "gt":
                results = [r for r in results if r.get(column) is not None and str(r[column]) > str(value)]
            elif op == "lte":
                results = [r for r in results if r.get(column) is not None and str(r[column]) <= str(value)]
            elif op == "lt":
                results = [r for r in results if r.get(column) is not None and str(r[column]) < str(value)]

        return results

    def execute(self):
        """Execute the query and return results."""
        table_data = list(self.mock_data.get(self.table_name, []))

        results = self._apply_filters(table_data)

        # Handle update
        if hasattr(self, "_update_data"):
            for result in results:
                result.update(self._update_data)
            return MockSupabaseResponse(results, count=len(results))

        # Handle delete
        if hasattr(self, "_delete"):
            for result in results:
                self.mock_data[self.table_name].remove(result)
            return MockSupabaseResponse(results, count=len(results))

        if self._order_by:
            results.sort(
                key=lambda x: str(x.get(self._order_by) or ""),
                reverse=self._order_desc
            )

        total_count = len(results)
        if self._limit:
            results = results[:self._limit]

        return MockSupabaseResponse(results, count=total_count)


class MockSupabaseClientInner:
    """Mock inner Supabase client (the actual client with table() method)."""

    def __init__(self, mock_data: Dict[str, list]):
        self.mock_data = mock_data

    def table(self, table_name: str) -> MockSupabaseTable:
        return MockSupabaseTable(table_name, self.mock_data)


class MockSupabaseClient:
    """
    Mock Supabase client wrapper (matches SupabaseClient class structure).
    This has a .client property that provides the actual table operations.
    """

    def __init__(self):
        self.mock_data: Dict[str, list] = {
            "households": [],
            "members": [],
            "reservations": [],
            "holiday_calendar": [],
            "audit_logs": [],
            "notification_queue": [],
        }
        self.client = MockSupabaseClientInner(self.mock_data)

    def log_audit(self, **kwargs):
        """Mock log audit."""
        log = {
            "id": str(uuid4()),
            "logged_at": datetime.now(timezone.utc).isoformat(),
            **{k: v for k, v in kwargs.items() if v is not None}
        }
        self.mock_data.setdefault("audit_logs", []).append(log)
        return log

    def clear(self):
        """Clear all mock data."""
        for key in self.mock_data:
            self.mock_data[key] = []


# ==========================================
# FIXTURES
# ==========================================

@pytest.fixture(scope="function")
def fresh_mock_client() -> MockSupabaseClient:
    """Function-scoped fresh mock client (clean for each test)."""
    return MockSupabaseClient()


@pytest.fixture(scope="function")
def mock_data(fresh_mock_client) -> Dict[str, list]:
    """Access to the mock data store for direct manipulation."""
    return fresh_mock_client.mock_data


@pytest.fixture
def store(fresh_mock_client) -> ReservationStore:
    return ReservationStore(db=fresh_mock_client)


@pytest.fixture
def service(store) -> ReservationService:
    """ReservationService whose store, sinks and calendar all use the mock."""
    return ReservationService(store=store)


@pytest.fixture
def calendar(fresh_mock_client) -> HolidayCalendar:
    return HolidayCalendar(db=fresh_mock_client)


@pytest.fixture(scope="function")
def client(fresh_mock_client) -> Generator[TestClient, None, None]:
    """
    Create test client with mocked Supabase.

    Each test gets a fresh mock client with clean data.
    """
    app.dependency_overrides[get_reservation_service] = (
        lambda: ReservationService(store=ReservationStore(db=fresh_mock_client))
    )
    with patch("gea_portal.core.database.get_supabase_client", return_value=fresh_mock_client):
        with TestClient(app) as test_client:
            yield test_client

    app.dependency_overrides.clear()


# ==========================================
# TIME FIXTURES
# ==========================================

@pytest.fixture
def frozen_now():
    """Freeze time at Monday March 9, 2026, 10:00 Africa/Gaborone."""
    with freeze_time(FROZEN_NOW_UTC):
        yield FROZEN_NOW_UTC


# ==========================================
# FACTORY FIXTURES
# ==========================================

@pytest.fixture
def create_household(mock_data):
    """Factory fixture to create a household with its primary member."""
    def _create(
        household_id: str = "HSH-001",
        name: str = "Molefe Household",
        email: Optional[str] = None,
        active: bool = True,
        first_name: str = "Kagiso",
    ) -> Dict[str, Any]:
        email = email or f"{household_id.lower()}@example.org"
        household = {
            "household_id": household_id,
            "household_name": name,
            "membership_type": "Full",
            "household_type": "Family",
            "active": active,
            "primary_email": email,
            "primary_phone": "+267 7100 0000",
        }
        mock_data["households"].append(household)
        mock_data["members"].append({
            "individual_id": f"IND-{household_id}",
            "household_id": household_id,
            "first_name": first_name,
            "last_name": name.split()[0],
            "email": email,
            "relationship_to_primary": "Primary",
            "date_of_birth": "1985-06-01",
            "active": True,
        })
        return household

    return _create


@pytest.fixture
def create_member(mock_data):
    """Factory fixture to add a member to a household."""
    def _create(
        household_id: str,
        first_name: str = "Neo",
        last_name: str = "Molefe",
        email: Optional[str] = None,
        relationship: str = "Spouse",
        date_of_birth: Optional[str] = None,
        active: bool = True,
    ) -> Dict[str, Any]:
        member = {
            "individual_id": f"IND-{uuid4().hex[:8]}",
            "household_id": household_id,
            "first_name": first_name,
            "last_name": last_name,
            "email": email,
            "relationship_to_primary": relationship,
            "date_of_birth": date_of_birth,
            "active": active,
        }
        mock_data["members"].append(member)
        return member

    return _create


@pytest.fixture
def create_reservation(mock_data):
    """Factory fixture to insert a stored reservation row."""
    def _create(
        household_id: str = "HSH-001",
        facility: str = "Tennis Court",
        event_date: date = date(2026, 3, 11),
        start_hour: int = 9,
        hours: float = 1.0,
        status: str = "Confirmed",
        is_excess: bool = False,
        bump_window_deadline: Optional[date] = None,
        has_guests: bool = False,
        guest_count: int = 0,
        guest_list_deadline: Optional[date] = None,
        guest_list_submitted: bool = False,
        primary_email: Optional[str] = None,
        reservation_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        start = local_dt(event_date, start_hour)
        end = start + timedelta(hours=hours)
        row = {
            "reservation_id": reservation_id or f"RES-2026-{uuid4().int % 10**10:010d}",
            "household_id": household_id,
            "household_name": "Molefe Household",
            "primary_email": primary_email or f"{household_id.lower()}@example.org",
            "facility": facility,
            "event_date": event_date.isoformat(),
            "start_time": start.isoformat(),
            "end_time": end.isoformat(),
            "duration_hours": hours,
            "event_name": "",
            "status": status,
            "has_guests": has_guests,
            "guest_count": guest_count,
            "guest_list_deadline": guest_list_deadline.isoformat() if guest_list_deadline else None,
            "guest_list_submitted": guest_list_submitted,
            "is_excess_reservation": is_excess,
            "bump_window_deadline": bump_window_deadline.isoformat() if bump_window_deadline else None,
        }
        mock_data["reservations"].append(row)
        return row

    return _create


@pytest.fixture
def create_holiday(mock_data):
    """Factory fixture to add an observed holiday."""
    def _create(holiday_date: date, name: str = "Public Holiday", active: bool = True):
        holiday = {
            "holiday_date": holiday_date.isoformat(),
            "holiday_name": name,
            "active": active,
        }
        mock_data["holiday_calendar"].append(holiday)
        return holiday

    return _create


# ==========================================
# CLEANUP
# ==========================================

@pytest.fixture(autouse=True)
def cleanup_overrides():
    """Reset dependency overrides and in-process failure counts after each test."""
    yield
    app.dependency_overrides.clear()
    from gea_portal.services.scheduler import job_monitor
    job_monitor.failed_jobs.clear()
    job_monitor.paused_jobs.clear()


# ==========================================
# MARKERS
# ==========================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (isolated, fast)")
    config.addinivalue_line("markers", "integration: Integration tests (several services together)")
    config.addinivalue_line("markers", "edge: Edge case tests")
    config.addinivalue_line("markers", "security: Authorization tests")
