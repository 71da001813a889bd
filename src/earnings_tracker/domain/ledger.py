"""Per-account balance ledger and the transitions that update it."""

from dataclasses import dataclass, replace
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from earnings_tracker.domain.earnings import ZERO_USD, to_money
from earnings_tracker.domain.sessions import TimeSession

HUNDRED = Decimal(100)


@dataclass(frozen=True)
class AccountLedger:
    """One row per user; also the single-writer record for the active session."""

    user_id: UUID
    target_balance_usd: Decimal
    current_balance_usd: Decimal = ZERO_USD
    lifetime_earnings_usd: Decimal = ZERO_USD
    current_streak_days: int = 0
    best_streak_days: int = 0
    last_earning_date: date | None = None
    targets_achieved: int = 0
    active_session_id: UUID | None = None
    version: int = 0

    @property
    def progress_percentage(self) -> Decimal:
        """Progress toward the target, capped at 100."""
        return progress_percentage(self.current_balance_usd, self.target_balance_usd)

    @property
    def remaining_to_target(self) -> Decimal:
        """Amount still needed to reach the target."""
        return max(self.target_balance_usd - self.current_balance_usd, ZERO_USD)

    def streak_as_of(self, today: date) -> int:
        """Current streak, or 0 once a full day without earnings has passed."""
        if self.last_earning_date is None:
            return 0
        if today - self.last_earning_date > timedelta(days=1):
            return 0
        return self.current_streak_days


def progress_percentage(balance_usd: Decimal, target_balance_usd: Decimal) -> Decimal:
    """Return balance as a percentage of the target, capped at 100."""
    if target_balance_usd <= 0:
        return ZERO_USD
    ratio = balance_usd / target_balance_usd * HUNDRED
    return min(to_money(ratio), to_money(HUNDRED))


def apply_completion(
    ledger: AccountLedger, earnings_usd: Decimal | None, earning_day: date
) -> AccountLedger:
    """Fold one completed session into the ledger.

    Balances grow by the session's earnings. Only sessions that earned something
    advance the streak; the streak grows on consecutive days and restarts at 1
    after any gap.
    """
    amount = earnings_usd or ZERO_USD
    balance = ledger.current_balance_usd + amount
    targets_achieved = ledger.targets_achieved
    if (
        ledger.target_balance_usd > 0
        and ledger.current_balance_usd < ledger.target_balance_usd <= balance
    ):
        targets_achieved += 1

    updated = replace(
        ledger,
        current_balance_usd=balance,
        lifetime_earnings_usd=ledger.lifetime_earnings_usd + amount,
        targets_achieved=targets_achieved,
    )
    if amount <= 0:
        return updated
    return _advance_streak(updated, earning_day)


def _advance_streak(ledger: AccountLedger, day: date) -> AccountLedger:
    last = ledger.last_earning_date
    if last is None:
        current = 1
    elif day <= last:
        return ledger
    elif day - last == timedelta(days=1):
        current = ledger.current_streak_days + 1
    else:
        current = 1
    return replace(
        ledger,
        current_streak_days=current,
        best_streak_days=max(ledger.best_streak_days, current),
        last_earning_date=day,
    )


@dataclass(frozen=True)
class SessionTransition:
    """Everything one single-writer commit changes for a user.

    The commit succeeds only if the stored ledger is still at
    ``expected_version``; ``ledger`` carries the next version.
    """

    user_id: UUID
    expected_version: int
    ledger: AccountLedger
    close: TimeSession | None = None
    open: TimeSession | None = None
