"""HTTP client for the earnings tracker API."""

from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

import httpx

from earnings_tracker.api.models import (
    SessionOut,
    SessionPageOut,
    StartSessionRequest,
    StartSessionResponse,
    StopSessionRequest,
    StopSessionResponse,
    SummaryOut,
    WindowOut,
)
from earnings_tracker.config import ClientSettings
from earnings_tracker.domain.sessions import SessionFilter
from earnings_tracker.errors import ERRORS_BY_CODE


class TimeTrackerApi(Protocol):
    """Interface for the server operations the timer needs."""

    async def start_session(
        self, task_id: UUID, notes: str | None = None
    ) -> StartSessionResponse:
        """Start a session, auto-closing any active one."""

    async def stop_session(
        self, session_id: UUID | None = None, notes: str | None = None
    ) -> StopSessionResponse:
        """Stop a session and return the confirmed figures."""

    async def get_active_session(self) -> SessionOut | None:
        """Return the account's active session, if any."""

    async def get_session(self, session_id: UUID) -> SessionOut:
        """Return one of the account's sessions."""

    async def get_summary(self) -> SummaryOut:
        """Return confirmed totals for every window."""


@dataclass
class HttpxTimeTrackerClient:
    """Earnings tracker client implemented with httpx."""

    base_url: str
    user_id: UUID
    http_client: httpx.AsyncClient
    timeout: float = 10

    @classmethod
    def create(cls, settings: ClientSettings) -> "HttpxTimeTrackerClient":
        """Create a client with a managed httpx session."""
        return cls(
            base_url=settings.api_base_url.rstrip("/"),
            user_id=settings.user_id,
            http_client=httpx.AsyncClient(),
            timeout=settings.request_timeout_seconds,
        )

    async def start_session(
        self, task_id: UUID, notes: str | None = None
    ) -> StartSessionResponse:
        """Start a session for a task."""
        payload = StartSessionRequest(task_id=task_id, notes=notes)
        data = await self._request(
            "POST", "/time-sessions", json=payload.model_dump(mode="json")
        )
        return StartSessionResponse.model_validate(data)

    async def stop_session(
        self, session_id: UUID | None = None, notes: str | None = None
    ) -> StopSessionResponse:
        """Stop the given session, or the active one."""
        payload = StopSessionRequest(session_id=session_id, notes=notes)
        data = await self._request(
            "POST", "/time-sessions/stop", json=payload.model_dump(mode="json")
        )
        return StopSessionResponse.model_validate(data)

    async def get_active_session(self) -> SessionOut | None:
        """Return the active session with its live projection, if any."""
        data = await self._request("GET", "/time-sessions/active")
        if data is None:
            return None
        return SessionOut.model_validate(data)

    async def get_session(self, session_id: UUID) -> SessionOut:
        """Return one session."""
        data = await self._request("GET", f"/time-sessions/{session_id}")
        return SessionOut.model_validate(data)

    async def list_sessions(
        self,
        page: int = 1,
        page_size: int = 20,
        session_filter: SessionFilter | None = None,
    ) -> SessionPageOut:
        """Return a page of sessions, newest first."""
        params: dict[str, object] = {"page": page, "page_size": page_size}
        if session_filter is not None:
            params.update(_filter_params(session_filter))
        data = await self._request("GET", "/time-sessions", params=params)
        return SessionPageOut.model_validate(data)

    async def get_summary(self) -> SummaryOut:
        """Return confirmed totals for every window."""
        data = await self._request("GET", "/analytics/summary")
        return SummaryOut.model_validate(data)

    async def get_window(self, window: str) -> WindowOut:
        """Return one window with its daily breakdown."""
        data = await self._request(
            "GET", "/analytics/summary", params={"window": window}
        )
        return WindowOut.model_validate(data)

    async def close(self) -> None:
        """Close the underlying HTTP client session."""
        await self.http_client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, object] | None = None,
        params: dict[str, object] | None = None,
    ) -> object:
        response = await self.http_client.request(
            method,
            f"{self.base_url}{path}",
            json=json,
            params=params,
            headers={"X-User-Id": str(self.user_id)},
            timeout=self.timeout,
        )
        if response.is_error:
            _raise_for_error(response)
        return response.json()


def _raise_for_error(response: httpx.Response) -> None:
    """Raise the tracker error named in the body, else the HTTP status error."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        error_cls = ERRORS_BY_CODE.get(str(body.get("error")))
        if error_cls is not None:
            raise error_cls(str(body.get("detail", "")))
    response.raise_for_status()


def _filter_params(session_filter: SessionFilter) -> dict[str, object]:
    params: dict[str, object] = {}
    if session_filter.task_id is not None:
        params["task_id"] = str(session_filter.task_id)
    if session_filter.category_id is not None:
        params["category_id"] = str(session_filter.category_id)
    if session_filter.active_only:
        params["active_only"] = "true"
    if session_filter.start_date is not None:
        params["start_date"] = session_filter.start_date.isoformat()
    if session_filter.end_date is not None:
        params["end_date"] = session_filter.end_date.isoformat()
    return params
