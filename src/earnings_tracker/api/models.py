"""Pydantic models for the HTTP API, shared with the timer client."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from earnings_tracker.domain.analytics import DailyEarnings, EarningsSummary, WindowTotals
from earnings_tracker.domain.ledger import AccountLedger
from earnings_tracker.domain.sessions import SessionPage, TimeSession


class StartSessionRequest(BaseModel):
    """Body for starting a session."""

    task_id: UUID
    notes: str | None = Field(default=None, max_length=2000)


class StopSessionRequest(BaseModel):
    """Body for stopping a session; the active one when no id is given."""

    session_id: UUID | None = None
    notes: str | None = Field(default=None, max_length=2000)


class TargetRequest(BaseModel):
    """Body for changing the balance target."""

    target_balance_usd: Decimal = Field(ge=0, max_digits=12, decimal_places=2)


class TimezoneRequest(BaseModel):
    """Body for changing the calendar timezone."""

    timezone: str


class TimezoneOut(BaseModel):
    """The calendar timezone used for windows and streaks."""

    timezone: str


class SessionOut(BaseModel):
    """A session as returned by the API."""

    id: UUID
    task_id: UUID
    category_id: UUID | None
    started_at: datetime
    ended_at: datetime | None
    duration_seconds: int | None
    hourly_rate_usd: Decimal | None
    earnings_usd: Decimal | None
    display_earnings_usd: Decimal
    rate_missing: bool
    is_active: bool
    notes: str | None = None
    current_duration_seconds: int | None = None
    current_earnings_usd: Decimal | None = None

    @classmethod
    def from_domain(cls, session: TimeSession, now: datetime | None = None) -> "SessionOut":
        """Build the payload; active sessions get a live projection at ``now``."""
        live = session.live_projection(now) if session.is_active and now else None
        return cls(
            id=session.id,
            task_id=session.task_id,
            category_id=session.category_id,
            started_at=session.started_at,
            ended_at=session.ended_at,
            duration_seconds=session.duration_seconds,
            hourly_rate_usd=session.hourly_rate_usd,
            earnings_usd=session.earnings_usd,
            display_earnings_usd=session.display_earnings_usd,
            rate_missing=session.rate_missing,
            is_active=session.is_active,
            notes=session.notes,
            current_duration_seconds=live.duration_seconds if live else None,
            current_earnings_usd=live.earnings_usd if live else None,
        )


class StartSessionResponse(BaseModel):
    """Result of a start, including the session it auto-closed, if any."""

    session: SessionOut
    prior_session_closed: SessionOut | None = None


class StopSessionResponse(BaseModel):
    """Server-confirmed figures for a stopped session."""

    session_id: UUID
    duration_seconds: int
    earnings_usd: Decimal
    rate_missing: bool
    session: SessionOut

    @classmethod
    def from_domain(cls, session: TimeSession) -> "StopSessionResponse":
        """Build the payload for an ended session."""
        return cls(
            session_id=session.id,
            duration_seconds=session.duration_seconds or 0,
            earnings_usd=session.display_earnings_usd,
            rate_missing=session.rate_missing,
            session=SessionOut.from_domain(session),
        )


class SessionPageOut(BaseModel):
    """A page of sessions with a true total count."""

    rows: list[SessionOut]
    total_count: int
    page: int
    page_size: int
    has_more: bool

    @classmethod
    def from_domain(cls, page: SessionPage, now: datetime) -> "SessionPageOut":
        """Build the payload for a page."""
        return cls(
            rows=[SessionOut.from_domain(row, now) for row in page.rows],
            total_count=page.total_count,
            page=page.page,
            page_size=page.page_size,
            has_more=page.has_more,
        )


class DailyOut(BaseModel):
    """One day of a window breakdown."""

    day: date
    earnings_usd: Decimal
    seconds: int
    session_count: int

    @classmethod
    def from_domain(cls, daily: DailyEarnings) -> "DailyOut":
        """Build the payload for a day."""
        return cls(
            day=daily.day,
            earnings_usd=daily.earnings_usd,
            seconds=daily.seconds,
            session_count=daily.session_count,
        )


class WindowOut(BaseModel):
    """Totals for one calendar window."""

    window: str
    start: datetime | None
    end: datetime | None
    earnings_usd: Decimal
    seconds: int
    hours: Decimal
    session_count: int
    daily: list[DailyOut]

    @classmethod
    def from_domain(cls, totals: WindowTotals) -> "WindowOut":
        """Build the payload for a window."""
        return cls(
            window=totals.window,
            start=totals.start,
            end=totals.end,
            earnings_usd=totals.earnings_usd,
            seconds=totals.seconds,
            hours=totals.hours,
            session_count=totals.session_count,
            daily=[DailyOut.from_domain(day) for day in totals.daily],
        )


class SummaryOut(BaseModel):
    """Confirmed totals across windows plus progress toward the target."""

    today_earnings: Decimal
    week_earnings: Decimal
    month_earnings: Decimal
    lifetime_earnings: Decimal
    today_hours: Decimal
    week_hours: Decimal
    month_hours: Decimal
    lifetime_hours: Decimal
    average_hourly_rate: Decimal
    target_balance: Decimal
    current_balance: Decimal
    progress_percentage: Decimal
    remaining_to_target: Decimal
    current_streak_days: int
    best_streak_days: int
    targets_achieved: int
    session_counts: dict[str, int]
    timezone: str
    generated_at: datetime

    @classmethod
    def from_domain(cls, summary: EarningsSummary) -> "SummaryOut":
        """Build the payload for a summary."""
        return cls(**summary.__dict__)


class LedgerOut(BaseModel):
    """The account ledger row."""

    target_balance_usd: Decimal
    current_balance_usd: Decimal
    lifetime_earnings_usd: Decimal
    progress_percentage: Decimal
    remaining_to_target: Decimal
    current_streak_days: int
    best_streak_days: int
    last_earning_date: date | None
    targets_achieved: int

    @classmethod
    def from_domain(cls, ledger: AccountLedger) -> "LedgerOut":
        """Build the payload for a ledger."""
        return cls(
            target_balance_usd=ledger.target_balance_usd,
            current_balance_usd=ledger.current_balance_usd,
            lifetime_earnings_usd=ledger.lifetime_earnings_usd,
            progress_percentage=ledger.progress_percentage,
            remaining_to_target=ledger.remaining_to_target,
            current_streak_days=ledger.current_streak_days,
            best_streak_days=ledger.best_streak_days,
            last_earning_date=ledger.last_earning_date,
            targets_achieved=ledger.targets_achieved,
        )


class ErrorOut(BaseModel):
    """Error body for every failed request."""

    error: str
    detail: str
