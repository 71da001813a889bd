"""Dependency wiring for a timer client process."""

import asyncio
from dataclasses import dataclass

from earnings_tracker.app_logging import configure_logging
from earnings_tracker.client.api import HttpxTimeTrackerClient
from earnings_tracker.client.realtime import SessionChangeListener
from earnings_tracker.client.reconciler import BalanceReconciler, ReconcilerRegistry
from earnings_tracker.client.state_store import JsonFileTimerStateStore
from earnings_tracker.client.timer import TimerStateMachine
from earnings_tracker.config import ClientSettings


@dataclass
class ClientContainer:
    """Holds the client-side dependencies for one account."""

    settings: ClientSettings
    api_client: HttpxTimeTrackerClient
    registry: ReconcilerRegistry
    reconciler: BalanceReconciler
    timer: TimerStateMachine
    realtime: SessionChangeListener | None = None

    async def run_ticker(self, stop: asyncio.Event) -> None:
        """Drive the timer's live projection until ``stop`` is set."""
        await self.timer.run(stop, self.settings.tick_interval_seconds)

    async def connect_realtime(self) -> SessionChangeListener | None:
        """Follow session changes made by other processes, when configured."""
        if self.realtime is not None:
            return self.realtime
        if not (self.settings.supabase_url and self.settings.supabase_anon_key):
            return None
        self.realtime = await SessionChangeListener.connect(
            self.settings,
            reconciler=self.reconciler,
            timer=self.timer,
        )
        return self.realtime

    async def close_resources(self) -> None:
        """Close any long-lived client resources."""
        if self.realtime is not None:
            await self.realtime.close()
            self.realtime = None
        self.registry.release(self.settings.user_id, self.api_client)
        await self.api_client.close()


def build_client_container(
    settings: ClientSettings | None = None,
    registry: ReconcilerRegistry | None = None,
) -> ClientContainer:
    """Create the client container; surfaces share the registry's reconciler."""
    configure_logging()
    resolved_settings = settings or ClientSettings()
    resolved_registry = registry or ReconcilerRegistry()
    api_client = HttpxTimeTrackerClient.create(resolved_settings)
    reconciler = resolved_registry.for_account(resolved_settings.user_id, api_client)
    timer = TimerStateMachine(
        api=api_client,
        store=JsonFileTimerStateStore(resolved_settings.timer_state_path),
        reconciler=reconciler,
    )
    return ClientContainer(
        settings=resolved_settings,
        api_client=api_client,
        registry=resolved_registry,
        reconciler=reconciler,
        timer=timer,
    )
