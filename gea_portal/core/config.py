"""
Configuration management using Pydantic Settings.
Loads environment variables from .env file.
"""
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "GEA Member Portal"
    app_version: str = "0.1.0"
    debug: bool = False

    # Supabase Configuration
    supabase_url: str = "http://localhost:54321"
    supabase_anon_key: str = "anon-key"
    supabase_service_role_key: Optional[str] = None  # For admin operations

    # CORS Settings (for Frontend)
    cors_origins: str = "http://localhost:5173"

    # Facility Reservation Rules
    tennis_weekly_limit_hours: float = 3  # Max hours per household per week
    tennis_session_max_hours: float = 2  # Max hours per single session
    tennis_bump_window_days: int = 1  # Calendar days before event
    leobo_monthly_limit: int = 1  # Max reservations per household per month
    leobo_max_hours: float = 6  # Max hours per leobo reservation
    leobo_bump_window_days: int = 5  # Business days before event
    guest_list_deadline_days: int = 3  # Business days before event for RSO notice
    guest_list_cutoff_hour: int = 17  # 5:00 PM on deadline day

    # Notification Addresses
    email_board: str = "board@geabotswana.org"
    email_mgt: str = "mgt-notify@geabotswana.org"
    email_rso: str = "treasurer@geabotswana.org"

    # Scheduler Settings
    enable_scheduler: bool = True
    scheduler_timezone: str = "Africa/Gaborone"
    nightly_tasks_hour: int = 2
    rso_summary_hour: int = 6

    # Only ONE worker should run the scheduler in multi-worker deployments
    run_scheduler: bool = False

    # Job Monitoring
    job_failure_alert_threshold: int = 2  # Pause after this many failures

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings instance.
    Call this function to get application settings.
    """
    return Settings()


# Global settings instance
settings = get_settings()
