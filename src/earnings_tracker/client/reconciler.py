"""Merges the confirmed server summary with the running timer's estimate.

Every UI surface for an account observes the same reconciler, so a stop
confirmed in one place is seen everywhere without each surface caching its
own copy of the totals.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from earnings_tracker.api.models import SummaryOut
from earnings_tracker.client.api import TimeTrackerApi
from earnings_tracker.domain.earnings import ZERO_USD, to_money
from earnings_tracker.domain.ledger import progress_percentage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LiveEstimate:
    """Client-side projection of the running timer."""

    elapsed_seconds: int
    earnings_usd: Decimal
    unconfirmed_earnings_usd: Decimal
    rate_missing: bool


@dataclass(frozen=True)
class BalanceView:
    """What a surface displays: confirmed totals plus the unconfirmed estimate."""

    today_earnings: Decimal
    week_earnings: Decimal
    month_earnings: Decimal
    lifetime_earnings: Decimal
    current_balance: Decimal
    target_balance: Decimal
    progress_percentage: Decimal
    unconfirmed_earnings: Decimal
    is_live: bool
    rate_missing: bool


Observer = Callable[[BalanceView], None]


@dataclass
class BalanceReconciler:
    """Single source of display state for one account."""

    api: TimeTrackerApi
    summary: SummaryOut | None = None
    live: LiveEstimate | None = None
    _observers: list[Observer] = field(default_factory=list)

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an observer and return a callable that removes it."""
        self._observers.append(observer)
        return lambda: self.unsubscribe(observer)

    def unsubscribe(self, observer: Observer) -> None:
        """Stop notifying an observer."""
        if observer in self._observers:
            self._observers.remove(observer)

    async def refresh(self) -> BalanceView:
        """Reload the confirmed summary from the server."""
        self.summary = await self.api.get_summary()
        return self._publish()

    def update_live(self, estimate: LiveEstimate | None) -> BalanceView:
        """Replace the unconfirmed estimate; ``None`` when no timer runs."""
        self.live = estimate
        return self._publish()

    async def confirm(self, estimate: LiveEstimate | None = None) -> BalanceView:
        """Drop the stale estimate once the server committed a change."""
        self.live = estimate
        return await self.refresh()

    def view(self) -> BalanceView:
        """Return confirmed totals with the live estimate layered on top."""
        unconfirmed = self.live.unconfirmed_earnings_usd if self.live else ZERO_USD
        summary = self.summary
        if summary is None:
            balance = to_money(unconfirmed)
            return BalanceView(
                today_earnings=balance,
                week_earnings=balance,
                month_earnings=balance,
                lifetime_earnings=balance,
                current_balance=balance,
                target_balance=ZERO_USD,
                progress_percentage=ZERO_USD,
                unconfirmed_earnings=balance,
                is_live=self.live is not None,
                rate_missing=bool(self.live and self.live.rate_missing),
            )
        balance = to_money(summary.current_balance + unconfirmed)
        return BalanceView(
            today_earnings=to_money(summary.today_earnings + unconfirmed),
            week_earnings=to_money(summary.week_earnings + unconfirmed),
            month_earnings=to_money(summary.month_earnings + unconfirmed),
            lifetime_earnings=to_money(summary.lifetime_earnings + unconfirmed),
            current_balance=balance,
            target_balance=summary.target_balance,
            progress_percentage=progress_percentage(balance, summary.target_balance),
            unconfirmed_earnings=to_money(unconfirmed),
            is_live=self.live is not None,
            rate_missing=bool(self.live and self.live.rate_missing),
        )

    def _publish(self) -> BalanceView:
        current = self.view()
        for observer in list(self._observers):
            try:
                observer(current)
            except Exception:
                logger.exception("Balance observer failed")
        return current


@dataclass
class ReconcilerRegistry:
    """Hands out one reconciler per account for the whole process."""

    _reconcilers: dict[UUID, BalanceReconciler] = field(default_factory=dict)
    _clients: dict[UUID, list[TimeTrackerApi]] = field(default_factory=dict)

    def for_account(self, user_id: UUID, api: TimeTrackerApi) -> BalanceReconciler:
        """Return the account's reconciler, creating it on first use.

        ``api`` is registered as one of the surface clients the reconciler may
        use until it is released.
        """
        reconciler = self._reconcilers.get(user_id)
        if reconciler is None:
            reconciler = BalanceReconciler(api=api)
            self._reconcilers[user_id] = reconciler
        self._clients.setdefault(user_id, []).append(api)
        return reconciler

    def release(self, user_id: UUID, api: TimeTrackerApi) -> None:
        """Unregister a surface client before it is closed.

        The reconciler moves to another open client of the account; it is
        forgotten once no client remains.
        """
        clients = self._clients.get(user_id, [])
        if api in clients:
            clients.remove(api)
        if not clients:
            self.discard(user_id)
            return
        reconciler = self._reconcilers.get(user_id)
        if reconciler is not None and reconciler.api is api:
            reconciler.api = clients[0]

    def discard(self, user_id: UUID) -> None:
        """Forget an account's reconciler, e.g. on sign-out."""
        self._reconcilers.pop(user_id, None)
        self._clients.pop(user_id, None)
