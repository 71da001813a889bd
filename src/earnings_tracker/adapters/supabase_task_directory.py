"""Supabase-backed read access to tasks and categories."""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from supabase import Client

from earnings_tracker.domain.sessions import CategoryRef, TaskRef
from earnings_tracker.services.time_sessions import TaskDirectory


@dataclass
class SupabaseTaskDirectory(TaskDirectory):
    """Reads the task board's tables; never writes them."""

    client: Client

    def get_task(self, task_id: UUID) -> TaskRef | None:
        """Return task ownership and category, if the task exists."""
        response = (
            self.client.table("tasks")
            .select("id, user_id, category_id")
            .eq("id", str(task_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        return TaskRef(
            id=UUID(str(row["id"])),
            user_id=UUID(str(row["user_id"])),
            category_id=UUID(str(row["category_id"])) if row.get("category_id") else None,
        )

    def get_category(self, category_id: UUID) -> CategoryRef | None:
        """Return the category's current hourly rate."""
        response = (
            self.client.table("categories")
            .select("id, hourly_rate_usd")
            .eq("id", str(category_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        rate = row.get("hourly_rate_usd")
        return CategoryRef(
            id=UUID(str(row["id"])),
            hourly_rate_usd=Decimal(str(rate)) if rate is not None else None,
        )
