"""Session lifecycle: start, stop and auto-close of timed work sessions."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Protocol
from uuid import UUID, uuid4

from earnings_tracker.domain.ledger import (
    AccountLedger,
    SessionTransition,
    apply_completion,
)
from earnings_tracker.domain.sessions import (
    CategoryRef,
    SessionFilter,
    SessionPage,
    StartResult,
    TaskRef,
    TimeSession,
)
from earnings_tracker.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from earnings_tracker.services.audit import AuditService
from earnings_tracker.services.user_settings import UserSettingsService

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


class TaskDirectory(Protocol):
    """Read-only view of tasks and categories owned by other components."""

    def get_task(self, task_id: UUID) -> TaskRef | None:
        """Return a task by id, if present."""

    def get_category(self, category_id: UUID) -> CategoryRef | None:
        """Return a category by id, if present."""


class TimeSessionRepository(Protocol):
    """Persistence interface for sessions and the per-user ledger."""

    def get_ledger(self, user_id: UUID) -> AccountLedger | None:
        """Return the user's ledger row, if present."""

    def create_ledger(self, ledger: AccountLedger) -> AccountLedger:
        """Insert a ledger row, or return the existing one for the user."""

    def get_session(self, session_id: UUID) -> TimeSession | None:
        """Return a session by id regardless of owner."""

    def get_active_session(self, user_id: UUID) -> TimeSession | None:
        """Return the user's active session, if any."""

    def apply_transition(self, transition: SessionTransition) -> None:
        """Atomically close/open sessions and store the ledger.

        Raises ConflictError when the ledger moved past the expected version
        or the session to close is no longer active.
        """

    def list_sessions(
        self,
        user_id: UUID,
        offset: int,
        limit: int,
        session_filter: SessionFilter | None = None,
    ) -> list[TimeSession]:
        """Return matching sessions newest first."""

    def count_sessions(
        self, user_id: UUID, session_filter: SessionFilter | None = None
    ) -> int:
        """Return the number of matching sessions for a user."""

    def list_completed_sessions(
        self, user_id: UUID, start: datetime | None, end: datetime | None
    ) -> list[TimeSession]:
        """Return ended sessions with ``start <= ended_at < end``."""


def utcnow() -> datetime:
    """Return the current UTC instant."""
    return datetime.now(tz=UTC)


@dataclass
class TimeSessionService:
    """Creates and ends sessions under the single-active-session rule."""

    repository: TimeSessionRepository
    tasks: TaskDirectory
    user_settings_service: UserSettingsService
    audit_service: AuditService
    default_target_balance_usd: Decimal = Decimal("1000.00")
    max_session_hours: float | None = 12
    clock: Callable[[], datetime] = field(default=utcnow)

    def start_session(
        self, user_id: UUID, task_id: UUID, notes: str | None = None
    ) -> StartResult:
        """Open a session for a task, closing any active one in the same commit."""
        task = self.tasks.get_task(_require_uuid(task_id, "task_id"))
        if task is None or task.user_id != user_id:
            raise NotFoundError("Task not found or access denied")
        rate = self._resolve_rate(task)

        ledger = self.ensure_ledger(user_id)
        now = self.clock()
        prior = self.repository.get_active_session(user_id)
        closed = None
        next_ledger = ledger
        if prior is not None:
            closed = prior.closed_at(self._capped_end(prior, now))
            next_ledger = self._fold(next_ledger, closed)

        session = TimeSession(
            id=uuid4(),
            user_id=user_id,
            task_id=task.id,
            category_id=task.category_id,
            started_at=now,
            ended_at=None,
            hourly_rate_usd=rate,
            earnings_usd=None,
            is_active=True,
            notes=notes.strip() if notes else None,
        )
        next_ledger = replace(
            next_ledger, active_session_id=session.id, version=ledger.version + 1
        )
        self.repository.apply_transition(
            SessionTransition(
                user_id=user_id,
                expected_version=ledger.version,
                ledger=next_ledger,
                close=closed,
                open=session,
            )
        )

        if prior is not None and closed is not None:
            logger.info(
                "Auto-closed active session before start",
                extra={"user_id": str(user_id), "session_id": str(closed.id)},
            )
            self._audit(
                lambda: self.audit_service.session_closed(prior, closed, auto=True),
                "session_auto_closed",
                user_id,
            )
        logger.info(
            "Started time session",
            extra={
                "user_id": str(user_id),
                "session_id": str(session.id),
                "rate_missing": session.rate_missing,
            },
        )
        self._audit(
            lambda: self.audit_service.session_started(session),
            "session_started",
            user_id,
        )
        return StartResult(session=session, prior_session_closed=closed)

    def end_session(
        self,
        user_id: UUID,
        session_id: UUID | None = None,
        notes: str | None = None,
    ) -> TimeSession:
        """End the given session, or the user's active one when no id is given."""
        if session_id is None:
            session = self.repository.get_active_session(user_id)
            if session is None:
                raise NotFoundError("No active session to end")
        else:
            session = self._owned_session(user_id, session_id)
            if not session.is_active:
                logger.warning(
                    "Rejected end of already-ended session",
                    extra={"user_id": str(user_id), "session_id": str(session.id)},
                )
                raise ConflictError("Session is already ended")

        ledger = self.ensure_ledger(user_id)
        closed = session.closed_at(self._capped_end(session, self.clock()), notes)
        next_ledger = replace(
            self._fold(ledger, closed),
            active_session_id=None,
            version=ledger.version + 1,
        )
        self.repository.apply_transition(
            SessionTransition(
                user_id=user_id,
                expected_version=ledger.version,
                ledger=next_ledger,
                close=closed,
            )
        )
        logger.info(
            "Ended time session",
            extra={
                "user_id": str(user_id),
                "session_id": str(closed.id),
                "duration_seconds": closed.duration_seconds,
            },
        )
        self._audit(
            lambda: self.audit_service.session_closed(session, closed, auto=False),
            "session_ended",
            user_id,
        )
        return closed

    def get_session(self, user_id: UUID, session_id: UUID) -> TimeSession:
        """Return one of the caller's sessions."""
        return self._owned_session(user_id, session_id)

    def get_active_session(self, user_id: UUID) -> TimeSession | None:
        """Return the caller's active session, if any."""
        return self.repository.get_active_session(user_id)

    def list_sessions(
        self,
        user_id: UUID,
        page: int,
        page_size: int,
        session_filter: SessionFilter | None = None,
    ) -> SessionPage:
        """Return one page of sessions and the total count under the same filter."""
        if page < 1:
            raise ValidationError("page must be >= 1")
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValidationError(f"page_size must be between 1 and {MAX_PAGE_SIZE}")
        if session_filter is not None:
            session_filter = replace(
                session_filter,
                start_date=_as_utc(session_filter.start_date),
                end_date=_as_utc(session_filter.end_date),
            )
            start, end = session_filter.start_date, session_filter.end_date
            if start is not None and end is not None and start > end:
                raise ValidationError("start_date must not be after end_date")
        rows = self.repository.list_sessions(
            user_id,
            offset=(page - 1) * page_size,
            limit=page_size,
            session_filter=session_filter,
        )
        total = self.repository.count_sessions(user_id, session_filter=session_filter)
        return SessionPage(rows=rows, total_count=total, page=page, page_size=page_size)

    def get_ledger(self, user_id: UUID) -> AccountLedger:
        """Return the caller's ledger, creating it with defaults if needed."""
        return self.ensure_ledger(user_id)

    def set_target(self, user_id: UUID, target_balance_usd: Decimal) -> AccountLedger:
        """Change the balance target; progress is derived from it."""
        if target_balance_usd < 0:
            raise ValidationError("target_balance_usd must be non-negative")
        ledger = self.ensure_ledger(user_id)
        updated = replace(
            ledger,
            target_balance_usd=target_balance_usd,
            version=ledger.version + 1,
        )
        self.repository.apply_transition(
            SessionTransition(
                user_id=user_id, expected_version=ledger.version, ledger=updated
            )
        )
        logger.info(
            "Updated balance target",
            extra={"user_id": str(user_id), "target": str(target_balance_usd)},
        )
        self._audit(
            lambda: self.audit_service.target_updated(ledger, updated),
            "target_updated",
            user_id,
        )
        return updated

    def ensure_ledger(self, user_id: UUID) -> AccountLedger:
        """Return the user's ledger, creating the default row on first use."""
        existing = self.repository.get_ledger(user_id)
        if existing is not None:
            return existing
        return self.repository.create_ledger(
            AccountLedger(
                user_id=user_id, target_balance_usd=self.default_target_balance_usd
            )
        )

    def _resolve_rate(self, task: TaskRef) -> Decimal | None:
        if task.category_id is None:
            return None
        category = self.tasks.get_category(task.category_id)
        if category is None or category.hourly_rate_usd is None:
            return None
        if category.hourly_rate_usd < 0:
            raise ValidationError("Category hourly rate must be non-negative")
        return category.hourly_rate_usd

    def _owned_session(self, user_id: UUID, session_id: UUID) -> TimeSession:
        session = self.repository.get_session(_require_uuid(session_id, "session_id"))
        if session is None:
            raise NotFoundError("Time session not found")
        if session.user_id != user_id:
            logger.warning(
                "Cross-account session access rejected",
                extra={"user_id": str(user_id), "session_id": str(session_id)},
            )
            raise AuthorizationError("Time session belongs to another account")
        return session

    def _capped_end(self, session: TimeSession, now: datetime) -> datetime:
        if self.max_session_hours is None:
            return now
        cap = session.started_at + timedelta(hours=self.max_session_hours)
        return min(now, cap)

    def _fold(self, ledger: AccountLedger, closed: TimeSession) -> AccountLedger:
        ended_at = closed.ended_at
        if ended_at is None:
            raise RuntimeError(f"Session {closed.id} has no ended_at to fold")
        zone = self.user_settings_service.get_zone(closed.user_id)
        return apply_completion(
            ledger, closed.earnings_usd, ended_at.astimezone(zone).date()
        )

    def _audit(self, write: Callable[[], None], event_type: str, user_id: UUID) -> None:
        # Runs after the transition committed; failures are logged, never raised.
        try:
            write()
        except Exception:
            logger.exception(
                "Failed to record audit event",
                extra={"user_id": str(user_id), "event_type": event_type},
            )


def _require_uuid(value: object, name: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError as exc:
        raise ValidationError(f"{name} must be a UUID") from exc


def _as_utc(value: datetime | None) -> datetime | None:
    # Naive bounds are read as UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)
