"""
Audit sink.

Every reservation state change is recorded here after it has been saved.
Recording is best-effort: failures are logged, never raised.
"""
import logging
from typing import Any, Optional

from gea_portal.core.database import get_supabase_client
from gea_portal.models.enums import AuditAction


logger = logging.getLogger(__name__)


class AuditLog:
    """Writes audit entries through SupabaseClient.log_audit."""

    def __init__(self, db=None):
        self._db = db

    def record(
        self,
        actor: str,
        action: AuditAction,
        target_type: str,
        target_id: str,
        details: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None
    ) -> bool:
        """Returns True if the entry was written."""
        try:
            db = self._db or get_supabase_client()
            db.log_audit(
                actor=actor,
                action=action.value,
                target_type=target_type,
                target_id=target_id,
                details=details,
                metadata=metadata,
            )
            return True
        except Exception as e:
            logger.error(f"Failed to record audit {action.value} for {target_id}: {e}")
            return False
