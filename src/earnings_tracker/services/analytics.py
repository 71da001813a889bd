"""Calendar-window earnings analytics."""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from typing import Protocol
from uuid import UUID
from zoneinfo import ZoneInfo

from earnings_tracker.domain import earnings
from earnings_tracker.domain.analytics import DailyEarnings, EarningsSummary, WindowTotals
from earnings_tracker.domain.ledger import AccountLedger
from earnings_tracker.domain.sessions import TimeSession
from earnings_tracker.errors import ValidationError
from earnings_tracker.services.user_settings import UserSettingsService

DECEMBER = 12
WINDOWS = ("today", "week", "month", "lifetime")


class AnalyticsRepository(Protocol):
    """Persistence interface for earnings analytics."""

    def list_completed_sessions(
        self, user_id: UUID, start: datetime | None, end: datetime | None
    ) -> list[TimeSession]:
        """Return ended sessions with ``start <= ended_at < end``."""

    def get_ledger(self, user_id: UUID) -> AccountLedger | None:
        """Return the user's ledger row, if present."""


@dataclass
class AnalyticsService:
    """Computes window sums by summing session rows in the user's calendar."""

    repository: AnalyticsRepository
    user_settings_service: UserSettingsService
    default_target_balance_usd: Decimal = Decimal("1000.00")
    clock: Callable[[], datetime] = field(default=lambda: datetime.now(tz=UTC))

    def get_summary(self, user_id: UUID, now: datetime | None = None) -> EarningsSummary:
        """Return today/week/month/lifetime totals with ledger progress."""
        timezone_name = self.user_settings_service.get_timezone(user_id)
        tz = ZoneInfo(timezone_name)
        local_now = (now or self.clock()).astimezone(tz)
        sessions = self.repository.list_completed_sessions(user_id, None, None)

        totals = {
            name: _totals(name, *window_bounds(name, local_now), sessions, tz)
            for name in WINDOWS
        }
        lifetime = totals["lifetime"]
        ledger = self.repository.get_ledger(user_id) or AccountLedger(
            user_id=user_id, target_balance_usd=self.default_target_balance_usd
        )
        return EarningsSummary(
            today_earnings=totals["today"].earnings_usd,
            week_earnings=totals["week"].earnings_usd,
            month_earnings=totals["month"].earnings_usd,
            lifetime_earnings=lifetime.earnings_usd,
            today_hours=totals["today"].hours,
            week_hours=totals["week"].hours,
            month_hours=totals["month"].hours,
            lifetime_hours=lifetime.hours,
            average_hourly_rate=earnings.average_hourly_rate(
                lifetime.earnings_usd, lifetime.seconds
            ),
            target_balance=ledger.target_balance_usd,
            current_balance=ledger.current_balance_usd,
            progress_percentage=ledger.progress_percentage,
            remaining_to_target=ledger.remaining_to_target,
            current_streak_days=ledger.streak_as_of(local_now.date()),
            best_streak_days=ledger.best_streak_days,
            targets_achieved=ledger.targets_achieved,
            session_counts={name: totals[name].session_count for name in WINDOWS},
            timezone=timezone_name,
            generated_at=local_now,
        )

    def get_window(
        self, user_id: UUID, window: str, now: datetime | None = None
    ) -> WindowTotals:
        """Return totals for one window with a per-day breakdown."""
        if window not in WINDOWS:
            raise ValidationError(f"window must be one of {', '.join(WINDOWS)}")
        tz = self.user_settings_service.get_zone(user_id)
        local_now = (now or self.clock()).astimezone(tz)
        start, end = window_bounds(window, local_now)
        sessions = self.repository.list_completed_sessions(
            user_id,
            start.astimezone(UTC) if start else None,
            end.astimezone(UTC) if end else None,
        )
        return _totals(window, start, end, sessions, tz, with_daily=True)


def window_bounds(
    window: str, local_now: datetime
) -> tuple[datetime | None, datetime | None]:
    """Return the half-open local-calendar bounds of a window."""
    midnight = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    if window == "today":
        return midnight, _local_midnight(midnight.date() + timedelta(days=1), local_now)
    if window == "week":
        start_day = midnight.date() - timedelta(days=local_now.weekday())
        return (
            _local_midnight(start_day, local_now),
            _local_midnight(start_day + timedelta(days=7), local_now),
        )
    if window == "month":
        start = midnight.replace(day=1)
        if start.month == DECEMBER:
            next_month = date(start.year + 1, 1, 1)
        else:
            next_month = date(start.year, start.month + 1, 1)
        return (
            _local_midnight(start.date(), local_now),
            _local_midnight(next_month, local_now),
        )
    return None, None


def _local_midnight(day: date, reference: datetime) -> datetime:
    """Midnight of ``day`` in the reference's zone, DST-aware."""
    return datetime(day.year, day.month, day.day, tzinfo=reference.tzinfo)


def _in_window(
    session: TimeSession, start: datetime | None, end: datetime | None
) -> bool:
    ended_at = session.ended_at
    if ended_at is None:
        return False
    if start is not None and ended_at < start:
        return False
    return end is None or ended_at < end


def _totals(  # noqa: PLR0913
    window: str,
    start: datetime | None,
    end: datetime | None,
    sessions: list[TimeSession],
    tz: ZoneInfo,
    with_daily: bool = False,
) -> WindowTotals:
    selected = [session for session in sessions if _in_window(session, start, end)]
    earned = sum((session.display_earnings_usd for session in selected), Decimal("0.00"))
    seconds = sum(session.duration_seconds or 0 for session in selected)
    daily: list[DailyEarnings] = []
    if with_daily and start is not None and end is not None:
        daily = _aggregate_days(start.date(), end.date(), selected, tz)
    return WindowTotals(
        window=window,
        start=start,
        end=end,
        earnings_usd=earnings.to_money(earned),
        seconds=seconds,
        hours=earnings.hours(seconds),
        session_count=len(selected),
        daily=daily,
    )


def _aggregate_days(
    first: date, last: date, sessions: list[TimeSession], tz: ZoneInfo
) -> list[DailyEarnings]:
    buckets: dict[date, list[TimeSession]] = {}
    for session in sessions:
        if session.ended_at is None:
            continue
        buckets.setdefault(session.ended_at.astimezone(tz).date(), []).append(session)

    daily = []
    day = first
    while day < last:
        entries = buckets.get(day, [])
        daily.append(
            DailyEarnings(
                day=day,
                earnings_usd=earnings.to_money(
                    sum((s.display_earnings_usd for s in entries), Decimal("0.00"))
                ),
                seconds=sum(s.duration_seconds or 0 for s in entries),
                session_count=len(entries),
            )
        )
        day += timedelta(days=1)
    return daily
