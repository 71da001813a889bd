"""Dependency container wiring for the application."""

from dataclasses import dataclass

from supabase import create_client

from earnings_tracker.adapters.supabase_audit_repository import SupabaseAuditRepository
from earnings_tracker.adapters.supabase_task_directory import SupabaseTaskDirectory
from earnings_tracker.adapters.supabase_time_session_repository import (
    SupabaseTimeSessionRepository,
)
from earnings_tracker.adapters.supabase_user_settings_repository import (
    SupabaseUserSettingsRepository,
)
from earnings_tracker.config import Settings
from earnings_tracker.services.analytics import AnalyticsService
from earnings_tracker.services.audit import AuditService
from earnings_tracker.services.time_sessions import TimeSessionService
from earnings_tracker.services.user_settings import UserSettingsService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    time_session_service: TimeSessionService
    analytics_service: AnalyticsService
    user_settings_service: UserSettingsService


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    session_repository = SupabaseTimeSessionRepository(supabase_client)
    user_settings_service = UserSettingsService(
        SupabaseUserSettingsRepository(supabase_client)
    )
    time_session_service = TimeSessionService(
        repository=session_repository,
        tasks=SupabaseTaskDirectory(supabase_client),
        user_settings_service=user_settings_service,
        audit_service=AuditService(SupabaseAuditRepository(supabase_client)),
        default_target_balance_usd=resolved_settings.default_target_balance_usd,
        max_session_hours=resolved_settings.max_session_hours,
    )
    analytics_service = AnalyticsService(
        repository=session_repository,
        user_settings_service=user_settings_service,
        default_target_balance_usd=resolved_settings.default_target_balance_usd,
    )
    return AppContainer(
        settings=resolved_settings,
        time_session_service=time_session_service,
        analytics_service=analytics_service,
        user_settings_service=user_settings_service,
    )
