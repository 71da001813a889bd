"""Supabase repository for the session audit trail."""

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from supabase import Client

from earnings_tracker.services.audit import AuditRepository


@dataclass
class SupabaseAuditRepository(AuditRepository):
    """Appends rows to ``audit_events``; rows are never updated."""

    client: Client

    def create_event(  # noqa: PLR0913
        self,
        user_id: UUID,
        entity_type: str,
        entity_id: UUID,
        event_type: str,
        before: dict[str, object] | None,
        after: dict[str, object] | None,
    ) -> None:
        """Insert one audit event."""
        response = (
            self.client.table("audit_events")
            .insert(
                {
                    "user_id": str(user_id),
                    "entity_type": entity_type,
                    "entity_id": str(entity_id),
                    "event_type": event_type,
                    "before_json": before,
                    "after_json": after,
                    "occurred_at": datetime.now(tz=UTC).isoformat(),
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError(f"Failed to record audit event {event_type}")
