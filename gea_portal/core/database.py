"""
Supabase database client management.

Features:
- Singleton client wrapper shared by the record store and sinks
- Audit logging for every reservation state change
"""
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Optional

from supabase import create_client, Client

from .config import settings


class SupabaseClient:
    """
    Singleton wrapper for Supabase client.
    Provides methods for common database operations.
    """

    _instance: Optional["SupabaseClient"] = None
    _client: Optional[Client] = None

    def __new__(cls) -> "SupabaseClient":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if self._client is None:
            self._client = create_client(
                settings.supabase_url,
                settings.supabase_service_role_key or settings.supabase_anon_key
            )

    @property
    def client(self) -> Client:
        """Get the Supabase client instance."""
        if self._client is None:
            raise RuntimeError("Supabase client not initialized")
        return self._client

    # ==========================================
    # AUDIT LOGGING
    # ==========================================

    def log_audit(
        self,
        actor: str,
        action: str,
        target_type: str,
        target_id: str,
        details: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None
    ) -> dict:
        """
        Log an audit entry.

        Args:
            actor: Email of the acting user, or 'system' for batch jobs
            action: One of the AuditAction values (e.g. 'RESERVATION_CREATED')
            target_type: 'Reservation', 'Household', ...
            target_id: Id of the affected record
            details: Human-readable summary of the change
            metadata: Additional context as JSON
        """
        audit_data = {
            "actor": actor,
            "action": action,
            "target_type": target_type,
            "target_id": target_id,
            "details": details,
            "metadata": metadata,
            "logged_at": datetime.now(timezone.utc).isoformat(),
        }
        # Remove None values
        audit_data = {k: v for k, v in audit_data.items() if v is not None}

        response = self.client.table("audit_logs").insert(audit_data).execute()
        return response.data[0] if response.data else {}


@lru_cache
def get_supabase_client() -> SupabaseClient:
    """Get the cached Supabase client instance."""
    return SupabaseClient()
