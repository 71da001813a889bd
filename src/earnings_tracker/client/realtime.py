"""Keeps a process in step with session changes made by other processes.

Subscribes to Supabase Realtime ``postgres_changes`` on ``time_sessions`` for
one account. Bursts of changes are debounced into a single sync, which
reconciles the timer with the server and refreshes the shared totals.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from supabase import AsyncClient, acreate_client

from earnings_tracker.client.reconciler import BalanceReconciler
from earnings_tracker.client.timer import TimerStateMachine
from earnings_tracker.config import ClientSettings

logger = logging.getLogger(__name__)


@dataclass
class SessionChangeListener:
    """Realtime subscription that re-syncs one account on every session change."""

    client: AsyncClient
    user_id: UUID
    reconciler: BalanceReconciler
    timer: TimerStateMachine | None = None
    debounce_seconds: float = 1.0
    channel: Any = None
    _loop: asyncio.AbstractEventLoop | None = None
    _pending: asyncio.Task[None] | None = None
    _sync_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    _syncing: bool = False

    @classmethod
    async def connect(
        cls,
        settings: ClientSettings,
        reconciler: BalanceReconciler,
        timer: TimerStateMachine | None = None,
    ) -> "SessionChangeListener":
        """Create a Supabase async client and subscribe for the settings' account."""
        if not (settings.supabase_url and settings.supabase_anon_key):
            raise RuntimeError("Supabase URL and anon key are required for realtime")
        client = await acreate_client(settings.supabase_url, settings.supabase_anon_key)
        listener = cls(
            client=client,
            user_id=settings.user_id,
            reconciler=reconciler,
            timer=timer,
            debounce_seconds=settings.realtime_debounce_seconds,
        )
        await listener.start()
        return listener

    async def start(self) -> None:
        """Subscribe to inserts, updates and deletes of the account's sessions."""
        self._loop = asyncio.get_running_loop()
        self.channel = self.client.channel(f"time_sessions_{self.user_id}")
        self.channel.on_postgres_changes(
            "*",
            schema="public",
            table="time_sessions",
            filter=f"user_id=eq.{self.user_id}",
            callback=self.on_change,
        )
        await self.channel.subscribe()
        logger.info("Subscribed to session changes", extra={"user_id": str(self.user_id)})

    def on_change(self, payload: dict[str, Any]) -> None:
        """Realtime callback; schedules a debounced sync on the listener's loop."""
        if self._loop is None:
            return
        self._loop.call_soon_threadsafe(self._schedule)

    async def wait_idle(self) -> None:
        """Wait until the scheduled sync, if any, has finished."""
        await asyncio.sleep(0)
        while self._pending is not None and not self._pending.done():
            await asyncio.wait({self._pending})

    async def close(self) -> None:
        """Cancel pending work and leave the channel."""
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        if self.channel is not None:
            await self.client.remove_channel(self.channel)
            self.channel = None

    def _schedule(self) -> None:
        # A sync already talking to the server is never cancelled.
        pending = self._pending
        if pending is not None and not pending.done() and not self._syncing:
            pending.cancel()
        self._pending = asyncio.ensure_future(self._sync_after_delay())

    async def _sync_after_delay(self) -> None:
        await asyncio.sleep(self.debounce_seconds)
        async with self._sync_lock:
            self._syncing = True
            try:
                await self._sync()
            except Exception:
                logger.exception(
                    "Failed to sync after session change",
                    extra={"user_id": str(self.user_id)},
                )
            finally:
                self._syncing = False

    async def _sync(self) -> None:
        if self.timer is not None:
            await self.timer.restore()
            if self.timer.reconciler is self.reconciler:
                return
        await self.reconciler.refresh()
