"""
Application configuration using pydantic-settings.
All config is validated at startup - fail fast if anything is missing.
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_base_url: str = "http://localhost:8000"
    log_level: str = "INFO"
    cors_allowed_origins: list[str] = ["http://localhost:3000"]

    # Database
    database_url: str
    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Discord (per-user notification channel)
    discord_bot_token: str = ""
    discord_api_base: str = "https://discord.com/api/v10"
    discord_timeout_seconds: float = 10.0

    # Outbound webhooks
    webhook_timeout_seconds: float = 10.0
    webhook_user_agent: str = "MonitorFlow-Webhook/1.0"
    webhook_signature_header: str = "X-MonitorFlow-Signature"

    # Ingestion rate limit (fixed window per caller IP)
    rate_limit_max_requests: int = 100
    rate_limit_window_seconds: int = 3600
    # Only trust X-Forwarded-For when a proxy in front of the app sets it
    trust_forwarded_for: bool = True

    # Monthly event ceilings per plan
    free_max_events_per_month: int = 100
    pro_max_events_per_month: int = 1000

    # Sentry
    sentry_dsn: str = ""

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
