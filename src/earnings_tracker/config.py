"""Application configuration."""

import os
from decimal import Decimal
from pathlib import Path
from uuid import UUID

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")
_ENV_FILES = (f".env.{_ENVIRONMENT}", ".env")


class Settings(BaseSettings):
    """Server settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    default_target_balance_usd: Decimal = Field(default=Decimal("1000.00"), ge=0)
    max_session_hours: float | None = 12
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(env_file=_ENV_FILES, extra="ignore")


class ClientSettings(BaseSettings):
    """Settings for the timer client running next to a UI surface."""

    api_base_url: str = "http://localhost:8000"
    user_id: UUID
    timer_state_path: Path = Path(".earnings-tracker/timer-state.json")
    tick_interval_seconds: float = Field(default=1.0, gt=0)
    request_timeout_seconds: float = 10
    # Realtime follow-up of other surfaces; disabled when unset.
    supabase_url: str | None = None
    supabase_anon_key: str | None = None
    realtime_debounce_seconds: float = Field(default=1.0, ge=0)

    model_config = SettingsConfigDict(
        env_prefix="EARNINGS_CLIENT_", env_file=_ENV_FILES, extra="ignore"
    )
