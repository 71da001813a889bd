"""Supabase-backed repository for time sessions and account ledgers."""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from postgrest.exceptions import APIError
from supabase import Client

from earnings_tracker.domain.ledger import AccountLedger, SessionTransition
from earnings_tracker.domain.sessions import SessionFilter, TimeSession
from earnings_tracker.errors import ConflictError
from earnings_tracker.services.analytics import AnalyticsRepository
from earnings_tracker.services.time_sessions import TimeSessionRepository

_SESSION_COLUMNS = (
    "id, user_id, task_id, category_id, started_at, ended_at, "
    "hourly_rate_usd, earnings_usd, is_active, session_notes"
)
_LEDGER_COLUMNS = (
    "user_id, target_balance_usd, current_balance_usd, lifetime_earnings_usd, "
    "current_streak_days, best_streak_days, last_earning_date, targets_achieved, "
    "active_session_id, version"
)
# Raised by apply_session_transition (serialization_failure) or by the
# one-active-session-per-user unique index.
_CONFLICT_CODES = {"40001", "23505"}
_PAGE = 1000


@dataclass
class SupabaseTimeSessionRepository(TimeSessionRepository, AnalyticsRepository):
    """Supabase implementation; transitions commit through one Postgres function."""

    client: Client

    def get_ledger(self, user_id: UUID) -> AccountLedger | None:
        """Return the user's ledger row, if present."""
        response = (
            self.client.table("account_ledgers")
            .select(_LEDGER_COLUMNS)
            .eq("user_id", str(user_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_ledger(response.data[0])

    def create_ledger(self, ledger: AccountLedger) -> AccountLedger:
        """Insert the default ledger row unless one already exists."""
        self.client.table("account_ledgers").upsert(
            _ledger_row(ledger), on_conflict="user_id", ignore_duplicates=True
        ).execute()
        stored = self.get_ledger(ledger.user_id)
        if stored is None:
            raise RuntimeError("Failed to create account ledger")
        return stored

    def get_session(self, session_id: UUID) -> TimeSession | None:
        """Return a session by id."""
        response = (
            self.client.table("time_sessions")
            .select(_SESSION_COLUMNS)
            .eq("id", str(session_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_session(response.data[0])

    def get_active_session(self, user_id: UUID) -> TimeSession | None:
        """Return the most recent active session for a user."""
        response = (
            self.client.table("time_sessions")
            .select(_SESSION_COLUMNS)
            .eq("user_id", str(user_id))
            .eq("is_active", True)
            .order("started_at", desc=True)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_session(response.data[0])

    def apply_transition(self, transition: SessionTransition) -> None:
        """Commit a close/open/ledger change in one database transaction."""
        params = {
            "p_user_id": str(transition.user_id),
            "p_expected_version": transition.expected_version,
            "p_ledger": _ledger_row(transition.ledger),
            "p_close": _close_row(transition.close) if transition.close else None,
            "p_open": _session_row(transition.open) if transition.open else None,
        }
        try:
            self.client.rpc("apply_session_transition", params).execute()
        except APIError as exc:
            if exc.code in _CONFLICT_CODES:
                raise ConflictError(
                    "Another session change for this account happened first; "
                    "reload and try again"
                ) from exc
            raise

    def list_sessions(
        self,
        user_id: UUID,
        offset: int,
        limit: int,
        session_filter: SessionFilter | None = None,
    ) -> list[TimeSession]:
        """Return matching sessions newest first."""
        query = self.client.table("time_sessions").select(_SESSION_COLUMNS)
        response = (
            _apply_filter(query.eq("user_id", str(user_id)), session_filter)
            .order("started_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        return [_parse_session(row) for row in response.data or []]

    def count_sessions(
        self, user_id: UUID, session_filter: SessionFilter | None = None
    ) -> int:
        """Return an exact count under the listing filter, independent of any page."""
        query = self.client.table("time_sessions").select("id", count="exact")
        response = (
            _apply_filter(query.eq("user_id", str(user_id)), session_filter)
            .limit(1)
            .execute()
        )
        if response.count is None:
            raise RuntimeError("Session count unavailable")
        return response.count

    def list_completed_sessions(
        self, user_id: UUID, start: datetime | None, end: datetime | None
    ) -> list[TimeSession]:
        """Return ended sessions in ``[start, end)`` ordered by end time."""
        sessions: list[TimeSession] = []
        offset = 0
        while True:
            query = (
                self.client.table("time_sessions")
                .select(_SESSION_COLUMNS)
                .eq("user_id", str(user_id))
                .eq("is_active", False)
            )
            if start is not None:
                query = query.gte("ended_at", start.isoformat())
            if end is not None:
                query = query.lt("ended_at", end.isoformat())
            response = (
                query.order("ended_at", desc=False)
                .range(offset, offset + _PAGE - 1)
                .execute()
            )
            rows = response.data or []
            sessions.extend(_parse_session(row) for row in rows)
            if len(rows) < _PAGE:
                return sessions
            offset += _PAGE


def _apply_filter(query, session_filter: SessionFilter | None):  # type: ignore[no-untyped-def]
    if session_filter is None:
        return query
    if session_filter.task_id is not None:
        query = query.eq("task_id", str(session_filter.task_id))
    if session_filter.category_id is not None:
        query = query.eq("category_id", str(session_filter.category_id))
    if session_filter.active_only:
        query = query.eq("is_active", True)
    if session_filter.start_date is not None:
        query = query.gte("started_at", session_filter.start_date.isoformat())
    if session_filter.end_date is not None:
        query = query.lte("started_at", session_filter.end_date.isoformat())
    return query


def _parse_datetime(raw: object) -> datetime | None:
    if isinstance(raw, str) and raw:
        return datetime.fromisoformat(raw)
    return None


def _parse_decimal(raw: object) -> Decimal | None:
    if raw is None:
        return None
    return Decimal(str(raw))


def _parse_session(row: dict[str, object]) -> TimeSession:
    started_at = _parse_datetime(row.get("started_at"))
    if started_at is None:
        raise RuntimeError(f"Session {row.get('id')} has no started_at")
    return TimeSession(
        id=UUID(str(row["id"])),
        user_id=UUID(str(row["user_id"])),
        task_id=UUID(str(row["task_id"])),
        category_id=UUID(str(row["category_id"])) if row.get("category_id") else None,
        started_at=started_at,
        ended_at=_parse_datetime(row.get("ended_at")),
        hourly_rate_usd=_parse_decimal(row.get("hourly_rate_usd")),
        earnings_usd=_parse_decimal(row.get("earnings_usd")),
        is_active=bool(row.get("is_active")),
        notes=row.get("session_notes"),
    )


def _parse_ledger(row: dict[str, object]) -> AccountLedger:
    last_day = row.get("last_earning_date")
    return AccountLedger(
        user_id=UUID(str(row["user_id"])),
        target_balance_usd=_parse_decimal(row.get("target_balance_usd")) or Decimal(0),
        current_balance_usd=_parse_decimal(row.get("current_balance_usd"))
        or Decimal("0.00"),
        lifetime_earnings_usd=_parse_decimal(row.get("lifetime_earnings_usd"))
        or Decimal("0.00"),
        current_streak_days=int(row.get("current_streak_days") or 0),
        best_streak_days=int(row.get("best_streak_days") or 0),
        last_earning_date=date.fromisoformat(last_day)
        if isinstance(last_day, str) and last_day
        else None,
        targets_achieved=int(row.get("targets_achieved") or 0),
        active_session_id=UUID(str(row["active_session_id"]))
        if row.get("active_session_id")
        else None,
        version=int(row.get("version") or 0),
    )


def _money(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


def _session_row(session: TimeSession) -> dict[str, object]:
    return {
        "id": str(session.id),
        "user_id": str(session.user_id),
        "task_id": str(session.task_id),
        "category_id": str(session.category_id) if session.category_id else None,
        "started_at": session.started_at.isoformat(),
        "hourly_rate_usd": _money(session.hourly_rate_usd),
        "session_notes": session.notes,
    }


def _close_row(session: TimeSession) -> dict[str, object]:
    return {
        "id": str(session.id),
        "ended_at": session.ended_at.isoformat() if session.ended_at else None,
        "earnings_usd": _money(session.earnings_usd),
        "session_notes": session.notes,
    }


def _ledger_row(ledger: AccountLedger) -> dict[str, object]:
    return {
        "user_id": str(ledger.user_id),
        "target_balance_usd": _money(ledger.target_balance_usd),
        "current_balance_usd": _money(ledger.current_balance_usd),
        "lifetime_earnings_usd": _money(ledger.lifetime_earnings_usd),
        "current_streak_days": ledger.current_streak_days,
        "best_streak_days": ledger.best_streak_days,
        "last_earning_date": ledger.last_earning_date.isoformat()
        if ledger.last_earning_date
        else None,
        "targets_achieved": ledger.targets_achieved,
        "active_session_id": str(ledger.active_session_id)
        if ledger.active_session_id
        else None,
        "version": ledger.version,
    }
