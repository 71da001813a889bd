"""Durable storage for the live timer state."""

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Protocol
from uuid import UUID

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from earnings_tracker.domain.earnings import ZERO_USD

logger = logging.getLogger(__name__)


class TimerStatus(str, Enum):
    """Client timer states; a stop returns straight to IDLE."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


class LiveTimerState(BaseModel):
    """Everything needed to rebuild the timer after a reload."""

    status: TimerStatus = TimerStatus.IDLE
    task_id: UUID | None = None
    session_id: UUID | None = None
    hourly_rate_usd: Decimal | None = None
    segment_started_at: datetime | None = None
    accumulated_seconds: int = 0
    confirmed_earnings_usd: Decimal = ZERO_USD
    rate_missing: bool = False


class TimerStateStore(Protocol):
    """Persistence interface for the live timer state."""

    def load(self) -> LiveTimerState | None:
        """Return the saved state, if any."""

    def save(self, state: LiveTimerState) -> None:
        """Persist the state."""

    def clear(self) -> None:
        """Remove any saved state."""


@dataclass
class JsonFileTimerStateStore:
    """Stores the timer state as a JSON document on disk."""

    path: Path

    def load(self) -> LiveTimerState | None:
        """Read the saved state; unreadable files are treated as absent."""
        if not self.path.exists():
            return None
        try:
            return LiveTimerState.model_validate_json(self.path.read_text("utf-8"))
        except PydanticValidationError:
            logger.warning(
                "Discarding unreadable timer state", extra={"path": str(self.path)}
            )
            return None

    def save(self, state: LiveTimerState) -> None:
        """Write the state atomically."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(state.model_dump_json(), "utf-8")
        os.replace(tmp_path, self.path)

    def clear(self) -> None:
        """Delete the state file."""
        self.path.unlink(missing_ok=True)
