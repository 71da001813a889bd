"""Client timer: start, pause, resume and stop against the server lifecycle.

Pausing ends the server session, so paused time is never billed; resuming
starts a fresh session on the same task. The timer keeps the confirmed
figures of closed segments and only estimates the running one.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID

from earnings_tracker.api.models import SessionOut, StopSessionResponse
from earnings_tracker.client.api import TimeTrackerApi
from earnings_tracker.client.reconciler import BalanceReconciler, LiveEstimate
from earnings_tracker.client.state_store import (
    LiveTimerState,
    TimerStateStore,
    TimerStatus,
)
from earnings_tracker.domain import earnings
from earnings_tracker.errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimerResult:
    """Server-confirmed outcome of a stopped timer."""

    task_id: UUID
    duration_seconds: int
    earnings_usd: Decimal
    rate_missing: bool


@dataclass
class TimerStateMachine:
    """Drives one account's timer; persists state on every transition."""

    api: TimeTrackerApi
    store: TimerStateStore
    reconciler: BalanceReconciler | None = None
    clock: Callable[[], datetime] = field(default=lambda: datetime.now(tz=UTC))
    state: LiveTimerState = field(default_factory=LiveTimerState)

    @property
    def status(self) -> TimerStatus:
        """Current timer state."""
        return self.state.status

    async def start(self, task_id: UUID, notes: str | None = None) -> LiveEstimate:
        """Start timing a task; switching tasks is a single server call."""
        if self.state.status is TimerStatus.RUNNING and self.state.task_id == task_id:
            raise ConflictError("Timer is already running for this task")
        response = await self.api.start_session(task_id, notes=notes)
        self.state = _running_state(response.session)
        self._persist()
        logger.info(
            "Timer started",
            extra={"task_id": str(task_id), "session_id": str(response.session.id)},
        )
        if response.prior_session_closed is not None:
            return await self._confirm()
        return self._publish_live()

    async def pause(self) -> LiveEstimate:
        """End the running segment; paused time does not accrue."""
        if self.state.status is not TimerStatus.RUNNING:
            raise ConflictError(f"Cannot pause a timer that is {self.state.status.value}")
        response = await self._stop_segment()
        self.state = self.state.model_copy(
            update={
                "status": TimerStatus.PAUSED,
                "session_id": None,
                "segment_started_at": None,
                "accumulated_seconds": self.state.accumulated_seconds
                + response.duration_seconds,
                "confirmed_earnings_usd": self.state.confirmed_earnings_usd
                + response.earnings_usd,
                "rate_missing": self.state.rate_missing or response.rate_missing,
            }
        )
        self._persist()
        logger.info("Timer paused", extra={"task_id": str(self.state.task_id)})
        return await self._confirm()

    async def resume(self) -> LiveEstimate:
        """Start a new segment on the paused task."""
        if self.state.status is not TimerStatus.PAUSED or self.state.task_id is None:
            raise ConflictError(f"Cannot resume a timer that is {self.state.status.value}")
        response = await self.api.start_session(self.state.task_id)
        session = response.session
        self.state = self.state.model_copy(
            update={
                "status": TimerStatus.RUNNING,
                "session_id": session.id,
                "hourly_rate_usd": session.hourly_rate_usd,
                "segment_started_at": session.started_at,
                "rate_missing": self.state.rate_missing or session.rate_missing,
            }
        )
        self._persist()
        logger.info("Timer resumed", extra={"task_id": str(self.state.task_id)})
        if response.prior_session_closed is not None:
            return await self._confirm()
        return self._publish_live()

    async def stop(self) -> TimerResult:
        """Stop the timer and adopt the server-confirmed figures."""
        if self.state.status is TimerStatus.IDLE or self.state.task_id is None:
            raise ConflictError("Timer is not running")
        seconds = self.state.accumulated_seconds
        earned = self.state.confirmed_earnings_usd
        rate_missing = self.state.rate_missing
        if self.state.status is TimerStatus.RUNNING:
            response = await self._stop_segment()
            seconds += response.duration_seconds
            earned += response.earnings_usd
            rate_missing = rate_missing or response.rate_missing
        result = TimerResult(
            task_id=self.state.task_id,
            duration_seconds=seconds,
            earnings_usd=earnings.to_money(earned),
            rate_missing=rate_missing,
        )
        self.state = LiveTimerState()
        self.store.clear()
        logger.info(
            "Timer stopped",
            extra={"task_id": str(result.task_id), "seconds": result.duration_seconds},
        )
        if self.reconciler is not None:
            await self.reconciler.confirm()
        return result

    def tick(self) -> LiveEstimate:
        """Recompute the live projection; no I/O."""
        return self._publish_live()

    def estimate(self, now: datetime | None = None) -> LiveEstimate:
        """Project elapsed time and earnings as of ``now``."""
        segment_seconds = 0
        segment_earnings = earnings.ZERO_USD
        started_at = self.state.segment_started_at
        if self.state.status is TimerStatus.RUNNING and started_at is not None:
            segment_seconds = earnings.duration_seconds(started_at, now or self.clock())
            segment_earnings = earnings.earnings_for(
                segment_seconds, self.state.hourly_rate_usd
            )
        return LiveEstimate(
            elapsed_seconds=self.state.accumulated_seconds + segment_seconds,
            earnings_usd=earnings.to_money(
                self.state.confirmed_earnings_usd + segment_earnings
            ),
            unconfirmed_earnings_usd=segment_earnings,
            rate_missing=self.state.rate_missing,
        )

    async def run(self, stop: asyncio.Event, interval_seconds: float = 1.0) -> None:
        """Tick once per interval while running, until ``stop`` is set."""
        while not stop.is_set():
            if self.state.status is TimerStatus.RUNNING:
                self.tick()
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval_seconds)
            except TimeoutError:
                continue

    async def restore(self) -> TimerStatus:
        """Rebuild from persisted state, reconciled with the server."""
        saved = self.store.load() or LiveTimerState()
        active = await self.api.get_active_session()

        if active is None:
            if saved.status is TimerStatus.RUNNING:
                logger.info(
                    "Saved session was closed elsewhere; resetting timer",
                    extra={"session_id": str(saved.session_id)},
                )
                saved = LiveTimerState()
        elif active.id != saved.session_id:
            resumed = saved.status is TimerStatus.PAUSED and saved.task_id == active.task_id
            base = saved if resumed else LiveTimerState()
            saved = base.model_copy(
                update=_running_state(active).model_dump(
                    exclude={"accumulated_seconds", "confirmed_earnings_usd"}
                )
            )
            logger.info(
                "Adopted session started elsewhere",
                extra={"session_id": str(active.id)},
            )

        self.state = saved
        if saved.status is TimerStatus.IDLE:
            self.store.clear()
        else:
            self.store.save(saved)
        if self.reconciler is not None:
            live = self.estimate() if saved.status is TimerStatus.RUNNING else None
            await self.reconciler.confirm(live)
        return saved.status

    async def _stop_segment(self) -> StopSessionResponse:
        """Stop the running server session, or adopt it if it already ended."""
        session_id = self.state.session_id
        try:
            return await self.api.stop_session(session_id)
        except (ConflictError, NotFoundError):
            if session_id is None:
                raise
            session = await self.api.get_session(session_id)
            if session.is_active:
                raise
        logger.info(
            "Session already ended elsewhere; adopting server figures",
            extra={"session_id": str(session_id)},
        )
        return StopSessionResponse(
            session_id=session.id,
            duration_seconds=session.duration_seconds or 0,
            earnings_usd=session.display_earnings_usd,
            rate_missing=session.rate_missing,
            session=session,
        )

    def _persist(self) -> None:
        self.store.save(self.state)

    async def _confirm(self) -> LiveEstimate:
        current = self.estimate()
        if self.reconciler is not None:
            live = current if self.state.status is TimerStatus.RUNNING else None
            await self.reconciler.confirm(live)
        return current

    def _publish_live(self) -> LiveEstimate:
        current = self.estimate()
        if self.reconciler is not None:
            live = current if self.state.status is TimerStatus.RUNNING else None
            self.reconciler.update_live(live)
        return current


def _running_state(session: SessionOut) -> LiveTimerState:
    return LiveTimerState(
        status=TimerStatus.RUNNING,
        task_id=session.task_id,
        session_id=session.id,
        hourly_rate_usd=session.hourly_rate_usd,
        segment_started_at=session.started_at,
        rate_missing=session.rate_missing,
    )
