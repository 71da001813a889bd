"""Domain models for earnings analytics."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal


@dataclass(frozen=True)
class DailyEarnings:
    """Earnings and tracked time for one calendar day."""

    day: date
    earnings_usd: Decimal
    seconds: int
    session_count: int


@dataclass(frozen=True)
class WindowTotals:
    """Totals for a calendar window, anchored on session end time."""

    window: str
    start: datetime | None
    end: datetime | None
    earnings_usd: Decimal
    seconds: int
    hours: Decimal
    session_count: int
    daily: list[DailyEarnings] = field(default_factory=list)


@dataclass(frozen=True)
class EarningsSummary:
    """Confirmed earnings across all windows plus ledger progress."""

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
