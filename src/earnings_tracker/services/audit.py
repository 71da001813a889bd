"""Audit trail for financial state changes."""

from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from earnings_tracker.domain.ledger import AccountLedger
from earnings_tracker.domain.sessions import TimeSession


class AuditRepository(Protocol):
    """Persistence interface for audit events."""

    def create_event(  # noqa: PLR0913
        self,
        user_id: UUID,
        entity_type: str,
        entity_id: UUID,
        event_type: str,
        before: dict[str, object] | None,
        after: dict[str, object] | None,
    ) -> None:
        """Create an audit event row."""


@dataclass
class AuditService:
    """Records who changed which session or ledger, and how."""

    repository: AuditRepository

    def session_started(self, session: TimeSession) -> None:
        """Record a newly opened session."""
        self.repository.create_event(
            user_id=session.user_id,
            entity_type="time_session",
            entity_id=session.id,
            event_type="session_started",
            before=None,
            after=serialize_session(session),
        )

    def session_closed(self, before: TimeSession, after: TimeSession, *, auto: bool) -> None:
        """Record an explicit stop or an auto-close caused by a new start."""
        self.repository.create_event(
            user_id=after.user_id,
            entity_type="time_session",
            entity_id=after.id,
            event_type="session_auto_closed" if auto else "session_ended",
            before=serialize_session(before),
            after=serialize_session(after),
        )

    def target_updated(self, before: AccountLedger, after: AccountLedger) -> None:
        """Record a change of the balance target."""
        self.repository.create_event(
            user_id=after.user_id,
            entity_type="account_ledger",
            entity_id=after.user_id,
            event_type="target_updated",
            before={"target_balance_usd": str(before.target_balance_usd)},
            after={"target_balance_usd": str(after.target_balance_usd)},
        )


def serialize_session(session: TimeSession) -> dict[str, object]:
    """Return a JSON-safe snapshot of a session."""
    return {
        "task_id": str(session.task_id),
        "category_id": str(session.category_id) if session.category_id else None,
        "started_at": session.started_at.isoformat(),
        "ended_at": session.ended_at.isoformat() if session.ended_at else None,
        "duration_seconds": session.duration_seconds,
        "hourly_rate_usd": (
            str(session.hourly_rate_usd) if session.hourly_rate_usd is not None else None
        ),
        "earnings_usd": (
            str(session.earnings_usd) if session.earnings_usd is not None else None
        ),
        "is_active": session.is_active,
    }
