"""Domain models for timed work sessions."""

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from earnings_tracker.domain import earnings


@dataclass(frozen=True)
class TimeSession:
    """Represents one contiguous timed work interval against a task."""

    id: UUID
    user_id: UUID
    task_id: UUID
    category_id: UUID | None
    started_at: datetime
    ended_at: datetime | None
    hourly_rate_usd: Decimal | None
    earnings_usd: Decimal | None
    is_active: bool
    notes: str | None = None

    @property
    def duration_seconds(self) -> int | None:
        """Elapsed seconds, recomputed from the timestamps."""
        if self.ended_at is None:
            return None
        return earnings.duration_seconds(self.started_at, self.ended_at)

    @property
    def rate_missing(self) -> bool:
        """True when no hourly rate was snapshotted at start."""
        return self.hourly_rate_usd is None

    @property
    def display_earnings_usd(self) -> Decimal:
        """Earnings for display; 0.00 while active or without a rate."""
        return self.earnings_usd if self.earnings_usd is not None else earnings.ZERO_USD

    def live_projection(self, now: datetime) -> earnings.EarningsBreakdown:
        """Estimate duration and earnings as if the session ended at ``now``."""
        end = self.ended_at or now
        return earnings.calculate(self.started_at, end, self.hourly_rate_usd)

    def closed_at(self, ended_at: datetime, notes: str | None = None) -> "TimeSession":
        """Return the ended copy of an active session."""
        result = earnings.calculate(self.started_at, ended_at, self.hourly_rate_usd)
        return replace(
            self,
            ended_at=ended_at,
            is_active=False,
            earnings_usd=None if result.rate_missing else result.earnings_usd,
            notes=notes.strip() if notes else self.notes,
        )


@dataclass(frozen=True)
class TaskRef:
    """Task ownership and categorisation supplied by the task board."""

    id: UUID
    user_id: UUID
    category_id: UUID | None


@dataclass(frozen=True)
class CategoryRef:
    """Category rate supplied by the category manager."""

    id: UUID
    hourly_rate_usd: Decimal | None


@dataclass(frozen=True)
class StartResult:
    """Outcome of starting a session."""

    session: TimeSession
    prior_session_closed: TimeSession | None


@dataclass(frozen=True)
class SessionPage:
    """A page of sessions with a true total count."""

    rows: list[TimeSession]
    total_count: int
    page: int
    page_size: int

    @property
    def has_more(self) -> bool:
        """True when rows exist beyond this page."""
        return self.page * self.page_size < self.total_count


@dataclass(frozen=True)
class SessionFilter:
    """Optional narrowing of a session listing; bounds apply to ``started_at``."""

    task_id: UUID | None = None
    category_id: UUID | None = None
    active_only: bool = False
    start_date: datetime | None = None
    end_date: datetime | None = None

    def matches(self, session: TimeSession) -> bool:
        """True when the session passes every set condition."""
        if self.task_id is not None and session.task_id != self.task_id:
            return False
        if self.category_id is not None and session.category_id != self.category_id:
            return False
        if self.active_only and not session.is_active:
            return False
        if self.start_date is not None and session.started_at < self.start_date:
            return False
        # end_date is inclusive
        return self.end_date is None or session.started_at <= self.end_date
