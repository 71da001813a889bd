"""Tests for Supabase adapter implementations."""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
from postgrest.exceptions import APIError

from earnings_tracker.adapters.supabase_audit_repository import SupabaseAuditRepository
from earnings_tracker.adapters.supabase_task_directory import SupabaseTaskDirectory
from earnings_tracker.adapters.supabase_time_session_repository import (
    SupabaseTimeSessionRepository,
)
from earnings_tracker.adapters.supabase_user_settings_repository import (
    SupabaseUserSettingsRepository,
)
from earnings_tracker.domain.ledger import AccountLedger, SessionTransition
from earnings_tracker.domain.sessions import SessionFilter, TimeSession
from earnings_tracker.errors import ConflictError

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


@dataclass
class FakeResponse:
    data: list[dict[str, object]] | None
    count: int | None = None


@dataclass
class FakeTable:
    name: str
    response_queue: dict[str, list[list[dict[str, object]]]] = field(
        default_factory=lambda: {"select": [], "insert": [], "upsert": []}
    )
    count: int | None = None
    last_payload: object | None = None
    last_options: dict[str, object] = field(default_factory=dict)
    last_filters: list[tuple[str, str, object]] = field(default_factory=list)
    ranges: list[tuple[int, int]] = field(default_factory=list)

    def queue(self, action: str, data: list[dict[str, object]]) -> None:
        self.response_queue[action].append(data)

    def select(self, *_args, **kwargs) -> "FakeTable":  # type: ignore[no-untyped-def]
        self._action = "select"
        if kwargs:
            self.last_options = kwargs
        return self

    def insert(self, payload) -> "FakeTable":  # type: ignore[no-untyped-def]
        self._action = "insert"
        self.last_payload = payload
        return self

    def upsert(self, payload, **kwargs) -> "FakeTable":  # type: ignore[no-untyped-def]
        self._action = "upsert"
        self.last_payload = payload
        self.last_options = kwargs
        return self

    def eq(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append(("eq", column, value))
        return self

    def gte(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append(("gte", column, value))
        return self

    def lt(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append(("lt", column, value))
        return self

    def lte(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append(("lte", column, value))
        return self

    def limit(self, _count: int) -> "FakeTable":
        return self

    def order(self, _column: str, desc: bool = False) -> "FakeTable":
        return self

    def range(self, start: int, end: int) -> "FakeTable":
        self.ranges.append((start, end))
        return self

    def execute(self) -> FakeResponse:
        action = getattr(self, "_action", "select")
        queue = self.response_queue.get(action, [])
        data = queue.pop(0) if queue else []
        return FakeResponse(data=data, count=self.count)


@dataclass
class FakeRpc:
    client: "FakeSupabaseClient"

    def execute(self) -> FakeResponse:
        if self.client.rpc_errors:
            raise self.client.rpc_errors.pop(0)
        return FakeResponse(data=[])


@dataclass
class FakeSupabaseClient:
    tables: dict[str, FakeTable] = field(default_factory=dict)
    rpc_calls: list[tuple[str, dict[str, object]]] = field(default_factory=list)
    rpc_errors: list[Exception] = field(default_factory=list)

    def table(self, name: str) -> FakeTable:
        if name not in self.tables:
            self.tables[name] = FakeTable(name=name)
        return self.tables[name]

    def rpc(self, name: str, params: dict[str, object]) -> FakeRpc:
        self.rpc_calls.append((name, params))
        return FakeRpc(self)


def _session_row(**overrides) -> dict[str, object]:  # type: ignore[no-untyped-def]
    row: dict[str, object] = {
        "id": str(uuid4()),
        "user_id": str(uuid4()),
        "task_id": str(uuid4()),
        "category_id": None,
        "started_at": T0.isoformat(),
        "ended_at": (T0 + timedelta(minutes=30)).isoformat(),
        "hourly_rate_usd": 150,
        "earnings_usd": "75.00",
        "is_active": False,
        "session_notes": "focus block",
    }
    row.update(overrides)
    return row


def _open_session(user_id: UUID) -> TimeSession:
    return TimeSession(
        id=uuid4(),
        user_id=user_id,
        task_id=uuid4(),
        category_id=uuid4(),
        started_at=T0,
        ended_at=None,
        hourly_rate_usd=Decimal("60.00"),
        earnings_usd=None,
        is_active=True,
    )


def test_session_rows_parse_into_domain() -> None:
    client = FakeSupabaseClient()
    row = _session_row()
    client.table("time_sessions").queue("select", [row])

    session = SupabaseTimeSessionRepository(client).get_session(UUID(str(row["id"])))

    assert session is not None
    assert session.hourly_rate_usd == Decimal("150")
    assert session.earnings_usd == Decimal("75.00")
    assert session.duration_seconds == 1800
    assert session.notes == "focus block"


def test_ledger_roundtrip_and_creation() -> None:
    client = FakeSupabaseClient()
    user_id = uuid4()
    ledgers = client.table("account_ledgers")
    ledgers.queue(
        "select",
        [
            {
                "user_id": str(user_id),
                "target_balance_usd": "1000.00",
                "current_balance_usd": "12.50",
                "lifetime_earnings_usd": "12.50",
                "current_streak_days": 2,
                "best_streak_days": 4,
                "last_earning_date": "2026-03-01",
                "targets_achieved": 0,
                "active_session_id": None,
                "version": 7,
            }
        ],
    )

    ledger = SupabaseTimeSessionRepository(client).create_ledger(
        AccountLedger(user_id=user_id, target_balance_usd=Decimal("1000.00"))
    )

    assert ledgers.last_options == {"on_conflict": "user_id", "ignore_duplicates": True}
    assert ledger.version == 7
    assert ledger.last_earning_date == date(2026, 3, 1)
    assert ledger.current_balance_usd == Decimal("12.50")


def test_apply_transition_calls_function_with_rows() -> None:
    client = FakeSupabaseClient()
    user_id = uuid4()
    opened = _open_session(user_id)
    ledger = AccountLedger(
        user_id=user_id,
        target_balance_usd=Decimal("1000.00"),
        active_session_id=opened.id,
        version=3,
    )

    SupabaseTimeSessionRepository(client).apply_transition(
        SessionTransition(user_id=user_id, expected_version=2, ledger=ledger, open=opened)
    )

    name, params = client.rpc_calls[0]
    assert name == "apply_session_transition"
    assert params["p_expected_version"] == 2
    assert params["p_close"] is None
    assert params["p_open"]["hourly_rate_usd"] == "60.00"  # type: ignore[index]
    assert params["p_ledger"]["active_session_id"] == str(opened.id)  # type: ignore[index]
    assert params["p_ledger"]["version"] == 3  # type: ignore[index]


@pytest.mark.parametrize("code", ["40001", "23505"])
def test_apply_transition_maps_conflicts(code: str) -> None:
    client = FakeSupabaseClient()
    client.rpc_errors.append(APIError({"code": code, "message": "conflict"}))
    user_id = uuid4()

    with pytest.raises(ConflictError):
        SupabaseTimeSessionRepository(client).apply_transition(
            SessionTransition(
                user_id=user_id,
                expected_version=0,
                ledger=AccountLedger(user_id=user_id, target_balance_usd=Decimal(0)),
            )
        )


def test_apply_transition_propagates_other_errors() -> None:
    client = FakeSupabaseClient()
    client.rpc_errors.append(APIError({"code": "42883", "message": "missing function"}))
    user_id = uuid4()

    with pytest.raises(APIError):
        SupabaseTimeSessionRepository(client).apply_transition(
            SessionTransition(
                user_id=user_id,
                expected_version=0,
                ledger=AccountLedger(user_id=user_id, target_balance_usd=Decimal(0)),
            )
        )


def test_list_and_count_sessions() -> None:
    client = FakeSupabaseClient()
    table = client.table("time_sessions")
    table.queue("select", [_session_row(), _session_row()])
    table.count = 15
    repository = SupabaseTimeSessionRepository(client)

    rows = repository.list_sessions(uuid4(), offset=5, limit=5)
    total = repository.count_sessions(uuid4())

    assert len(rows) == 2
    assert table.ranges == [(5, 9)]
    assert total == 15
    assert table.last_options == {"count": "exact"}


def test_list_and_count_apply_the_same_filter() -> None:
    client = FakeSupabaseClient()
    table = client.table("time_sessions")
    table.count = 1
    task_id, category_id = uuid4(), uuid4()
    session_filter = SessionFilter(
        task_id=task_id,
        category_id=category_id,
        active_only=True,
        start_date=T0,
        end_date=T0 + timedelta(days=1),
    )
    repository = SupabaseTimeSessionRepository(client)
    expected = [
        ("eq", "task_id", str(task_id)),
        ("eq", "category_id", str(category_id)),
        ("eq", "is_active", True),
        ("gte", "started_at", T0.isoformat()),
        ("lte", "started_at", (T0 + timedelta(days=1)).isoformat()),
    ]

    repository.list_sessions(uuid4(), offset=0, limit=10, session_filter=session_filter)
    listed = table.last_filters[1:]
    table.last_filters.clear()
    repository.count_sessions(uuid4(), session_filter=session_filter)

    assert listed == expected
    assert table.last_filters[1:] == expected


def test_count_requires_exact_count() -> None:
    client = FakeSupabaseClient()

    with pytest.raises(RuntimeError):
        SupabaseTimeSessionRepository(client).count_sessions(uuid4())


def test_completed_sessions_page_through_results() -> None:
    client = FakeSupabaseClient()
    table = client.table("time_sessions")
    table.queue("select", [_session_row() for _ in range(1000)])
    table.queue("select", [_session_row() for _ in range(3)])

    rows = SupabaseTimeSessionRepository(client).list_completed_sessions(
        uuid4(), T0, T0 + timedelta(days=1)
    )

    assert len(rows) == 1003
    assert table.ranges == [(0, 999), (1000, 1999)]
    assert ("gte", "ended_at", T0.isoformat()) in table.last_filters


def test_task_directory_reads_task_and_rate() -> None:
    client = FakeSupabaseClient()
    task_id, user_id, category_id = uuid4(), uuid4(), uuid4()
    client.table("tasks").queue(
        "select",
        [{"id": str(task_id), "user_id": str(user_id), "category_id": str(category_id)}],
    )
    client.table("categories").queue(
        "select", [{"id": str(category_id), "hourly_rate_usd": None}]
    )
    directory = SupabaseTaskDirectory(client)

    task = directory.get_task(task_id)
    category = directory.get_category(category_id)

    assert task is not None and task.category_id == category_id
    assert category is not None and category.hourly_rate_usd is None
    assert directory.get_task(uuid4()) is None


def test_user_settings_repository() -> None:
    client = FakeSupabaseClient()
    settings_table = client.table("user_settings")
    settings_table.queue("select", [{"timezone": "UTC"}])

    repository = SupabaseUserSettingsRepository(client)
    assert repository.get_timezone(uuid4()) == "UTC"

    repository.set_timezone(uuid4(), "America/Los_Angeles")
    assert isinstance(settings_table.last_payload, dict)
    assert settings_table.last_payload["timezone"] == "America/Los_Angeles"
    assert settings_table.last_options == {"on_conflict": "user_id"}


def test_audit_repository_requires_inserted_row() -> None:
    client = FakeSupabaseClient()
    table = client.table("audit_events")
    table.queue("insert", [{"id": str(uuid4())}])
    repository = SupabaseAuditRepository(client)

    repository.create_event(uuid4(), "time_session", uuid4(), "session_started", None, {})
    assert table.last_payload["event_type"] == "session_started"  # type: ignore[index]

    with pytest.raises(RuntimeError):
        repository.create_event(uuid4(), "time_session", uuid4(), "session_ended", None, {})
