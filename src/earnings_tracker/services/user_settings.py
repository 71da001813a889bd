"""Per-user calendar settings."""

from dataclasses import dataclass
from typing import Protocol
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from earnings_tracker.errors import ValidationError

DEFAULT_TIMEZONE = "UTC"


class UserSettingsRepository(Protocol):
    """Persistence interface for user settings."""

    def get_timezone(self, user_id: UUID) -> str | None:
        """Return the user's timezone if set."""

    def set_timezone(self, user_id: UUID, timezone: str) -> None:
        """Create or update the user's timezone."""


@dataclass
class UserSettingsService:
    """Resolves the calendar used for day/week/month windows and streaks."""

    repository: UserSettingsRepository

    def get_timezone(self, user_id: UUID) -> str:
        """Return the user timezone or UTC if unset."""
        return self.repository.get_timezone(user_id) or DEFAULT_TIMEZONE

    def get_zone(self, user_id: UUID) -> ZoneInfo:
        """Return the user's timezone as a ZoneInfo."""
        return ZoneInfo(self.get_timezone(user_id))

    def set_timezone(self, user_id: UUID, timezone: str) -> None:
        """Validate and persist a user's timezone."""
        cleaned = timezone.strip()
        if not is_valid_timezone(cleaned):
            raise ValidationError(f"Unknown timezone: {timezone!r}")
        self.repository.set_timezone(user_id, cleaned)


def is_valid_timezone(value: str) -> bool:
    """Return True for a resolvable IANA timezone name."""
    if not value:
        return False
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True
