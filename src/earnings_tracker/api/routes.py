"""Session, analytics and ledger endpoints scoped to the calling account."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query, Request, status

from earnings_tracker.api.models import (
    LedgerOut,
    SessionOut,
    SessionPageOut,
    StartSessionRequest,
    StartSessionResponse,
    StopSessionRequest,
    StopSessionResponse,
    SummaryOut,
    TargetRequest,
    TimezoneOut,
    TimezoneRequest,
    WindowOut,
)
from earnings_tracker.containers import AppContainer
from earnings_tracker.domain.sessions import SessionFilter
from earnings_tracker.errors import ValidationError

router = APIRouter()


def get_container(request: Request) -> AppContainer:
    """Return the container attached to the app."""
    return request.app.state.container


async def current_user_id(x_user_id: str | None = Header(default=None)) -> UUID:
    """Resolve the caller's identity supplied by the authentication layer."""
    if not x_user_id:
        raise ValidationError("X-User-Id header is required")
    try:
        return UUID(x_user_id)
    except ValueError as exc:
        raise ValidationError("X-User-Id must be a UUID") from exc


def _now(container: AppContainer) -> datetime:
    return container.time_session_service.clock()


@router.post(
    "/time-sessions",
    status_code=status.HTTP_201_CREATED,
    response_model=StartSessionResponse,
)
async def start_session(
    body: StartSessionRequest,
    user_id: UUID = Depends(current_user_id),
    container: AppContainer = Depends(get_container),
) -> StartSessionResponse:
    """Start timing a task; any active session is closed first."""
    result = container.time_session_service.start_session(
        user_id, body.task_id, notes=body.notes
    )
    prior = result.prior_session_closed
    return StartSessionResponse(
        session=SessionOut.from_domain(result.session, _now(container)),
        prior_session_closed=SessionOut.from_domain(prior) if prior else None,
    )


@router.post("/time-sessions/stop", response_model=StopSessionResponse)
async def stop_session(
    body: StopSessionRequest,
    user_id: UUID = Depends(current_user_id),
    container: AppContainer = Depends(get_container),
) -> StopSessionResponse:
    """Stop a session and return its confirmed duration and earnings."""
    ended = container.time_session_service.end_session(
        user_id, body.session_id, notes=body.notes
    )
    return StopSessionResponse.from_domain(ended)


@router.get("/time-sessions", response_model=SessionPageOut)
async def list_sessions(
    page: int = Query(default=1),
    page_size: int = Query(default=20),
    task_id: UUID | None = None,
    category_id: UUID | None = None,
    active_only: bool = False,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    user_id: UUID = Depends(current_user_id),
    container: AppContainer = Depends(get_container),
) -> SessionPageOut:
    """Return a page of the caller's sessions, newest first.

    ``start_date`` and ``end_date`` bound ``started_at`` inclusively; the total
    count honours the same filters.
    """
    session_filter = SessionFilter(
        task_id=task_id,
        category_id=category_id,
        active_only=active_only,
        start_date=start_date,
        end_date=end_date,
    )
    result = container.time_session_service.list_sessions(
        user_id, page, page_size, session_filter
    )
    return SessionPageOut.from_domain(result, _now(container))


@router.get("/time-sessions/active", response_model=SessionOut | None)
async def active_session(
    user_id: UUID = Depends(current_user_id),
    container: AppContainer = Depends(get_container),
) -> SessionOut | None:
    """Return the caller's active session with a live projection, if any."""
    session = container.time_session_service.get_active_session(user_id)
    return SessionOut.from_domain(session, _now(container)) if session else None


@router.get("/time-sessions/{session_id}", response_model=SessionOut)
async def get_session(
    session_id: UUID,
    user_id: UUID = Depends(current_user_id),
    container: AppContainer = Depends(get_container),
) -> SessionOut:
    """Return one of the caller's sessions."""
    session = container.time_session_service.get_session(user_id, session_id)
    return SessionOut.from_domain(session, _now(container))


@router.get("/analytics/summary", response_model=SummaryOut | WindowOut)
async def summary(
    window: str | None = None,
    user_id: UUID = Depends(current_user_id),
    container: AppContainer = Depends(get_container),
) -> SummaryOut | WindowOut:
    """Return all window totals, or a single window with a daily breakdown."""
    if window is None:
        return SummaryOut.from_domain(
            container.analytics_service.get_summary(user_id)
        )
    return WindowOut.from_domain(container.analytics_service.get_window(user_id, window))


@router.get("/ledger", response_model=LedgerOut)
async def get_ledger(
    user_id: UUID = Depends(current_user_id),
    container: AppContainer = Depends(get_container),
) -> LedgerOut:
    """Return the caller's balance ledger."""
    return LedgerOut.from_domain(container.time_session_service.get_ledger(user_id))


@router.put("/ledger/target", response_model=LedgerOut)
async def set_target(
    body: TargetRequest,
    user_id: UUID = Depends(current_user_id),
    container: AppContainer = Depends(get_container),
) -> LedgerOut:
    """Change the balance target."""
    ledger = container.time_session_service.set_target(
        user_id, body.target_balance_usd
    )
    return LedgerOut.from_domain(ledger)


@router.get("/settings/timezone", response_model=TimezoneOut)
async def get_timezone(
    user_id: UUID = Depends(current_user_id),
    container: AppContainer = Depends(get_container),
) -> TimezoneOut:
    """Return the calendar timezone for the caller."""
    return TimezoneOut(
        timezone=container.user_settings_service.get_timezone(user_id)
    )


@router.put("/settings/timezone", response_model=TimezoneOut)
async def set_timezone(
    body: TimezoneRequest,
    user_id: UUID = Depends(current_user_id),
    container: AppContainer = Depends(get_container),
) -> TimezoneOut:
    """Change the calendar timezone for the caller."""
    container.user_settings_service.set_timezone(user_id, body.timezone)
    return TimezoneOut(
        timezone=container.user_settings_service.get_timezone(user_id)
    )
