from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Environment
    environment: str = "development"  # "development" or "production"

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/cfsync.db"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    debug: bool = False

    # Sync scheduler
    default_sync_cron: str = "0 2 * * *"
    scheduler_timezone: str = ""  # empty means local time
    sync_max_workers: int = 2
    sync_misfire_grace_seconds: int = 300

    # Rating service
    codeforces_api_base: str = "https://codeforces.com/api"
    fetch_timeout: float = 15.0
    fetch_max_retries: int = 3
    fetch_backoff_base: float = 1.0

    # Derived statistics
    stats_window_days: int = 90
    rating_bucket_width: int = 100

    # Inactivity reminders
    reminders_globally_enabled: bool = True
    reminder_inactivity_days: int = 7
    reminder_cooldown_days: int = 7
    email_api_url: str = "https://api.resend.com/emails"
    email_api_key: str = ""
    email_from: str = ""

    # CORS (comma-separated origins, empty means localhost only)
    cors_origins: str = ""

    # Admin
    admin_api_key: str = ""

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def sync_database_url(self) -> str:
        return self.database_url.replace("+aiosqlite", "")


@lru_cache
def get_settings() -> Settings:
    return Settings()
