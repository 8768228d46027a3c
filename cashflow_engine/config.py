"""Configuration management using Pydantic Settings"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = "sqlite:///./cashflow.db"

    # External Services
    reference_api_base: str = "http://localhost:8001"

    # Service
    service_name: str = "cashflow-engine"
    log_level: str = "INFO"

    # HTTP Client
    http_timeout_seconds: float = 5.0

    # Recurring execution
    execute_max_retries: int = 3
    execute_backoff_base: float = 0.05  # Seconds, doubled per conflicting attempt
    execute_max_batch: int = 1000  # Occurrences per execution; the rest wait for the next run

    # Cron triggers
    cron_secret: str = "default-secret"
    upcoming_window_days: int = 3

    # Dashboard
    dashboard_recent_limit: int = 10


settings = Settings()
