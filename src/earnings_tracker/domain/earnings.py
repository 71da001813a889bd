"""Pure earnings arithmetic.

Durations are always derived from the two timestamps at the point of use and
earnings from that duration and the rate snapshot, so a value can never lag the
write that produced its inputs.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

CENTS = Decimal("0.01")
SECONDS_PER_HOUR = Decimal(3600)
ZERO_USD = Decimal("0.00")


def to_money(value: Decimal | float | int | str) -> Decimal:
    """Quantize a value to a 2-decimal currency amount (round half up)."""
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def duration_seconds(started_at: datetime, ended_at: datetime) -> int:
    """Return whole elapsed seconds between two instants, never negative."""
    elapsed = (ended_at - started_at).total_seconds()
    return max(int(elapsed), 0)


def earnings_for(seconds: int, hourly_rate_usd: Decimal | None) -> Decimal:
    """Return earnings for a duration; 0.00 when no rate was snapshotted."""
    if hourly_rate_usd is None:
        return ZERO_USD
    return to_money(Decimal(seconds) / SECONDS_PER_HOUR * hourly_rate_usd)


@dataclass(frozen=True)
class EarningsBreakdown:
    """Derived duration and earnings with the rate-missing signal."""

    duration_seconds: int
    earnings_usd: Decimal
    rate_missing: bool


def calculate(
    started_at: datetime, ended_at: datetime, hourly_rate_usd: Decimal | None
) -> EarningsBreakdown:
    """Derive duration and earnings for a closed interval."""
    seconds = duration_seconds(started_at, ended_at)
    return EarningsBreakdown(
        duration_seconds=seconds,
        earnings_usd=earnings_for(seconds, hourly_rate_usd),
        rate_missing=hourly_rate_usd is None,
    )


def hours(seconds: int) -> Decimal:
    """Convert seconds to hours rounded to 2 decimals."""
    return to_money(Decimal(seconds) / SECONDS_PER_HOUR)


def average_hourly_rate(earnings_usd: Decimal, seconds: int) -> Decimal:
    """Return earnings per hour, or 0.00 when no time was tracked."""
    if seconds <= 0:
        return ZERO_USD
    return to_money(earnings_usd * SECONDS_PER_HOUR / Decimal(seconds))
