"""
config.py - udyam-wizard settings.

Usage:
    from udyam_wizard.config import settings
    print(settings.session_ttl_seconds)

Every service also accepts explicit overrides in its constructor, so tests
never need to mutate the singleton.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="UDYAM_",
        case_sensitive=False,
        extra="ignore",  # Silently ignore any extra env vars
    )

    # --- Durable storage ---
    # Prefix shared by the session keys and the recovery namespace
    storage_prefix: str = "udyam_"
    # Empty -> in-process memory store; otherwise redis://host:port/db
    redis_url: str = ""
    # Browser local storage is typically capped at 5 MB per origin
    storage_quota_bytes: int = 5 * 1024 * 1024

    # --- Expiry (seconds) ---
    session_ttl_seconds: int = 86400      # 24 hours
    recovery_ttl_seconds: int = 86400     # 24 hours
    cache_ttl_seconds: int = 86400        # 24 hours

    # --- Recovery auto-save ---
    auto_save_interval_seconds: float = 5.0

    # --- Wizard ---
    total_steps: int = 2

    # --- Registration API (transport) ---
    api_base_url: str = "http://localhost:4000/api/v1"
    api_timeout_seconds: float = 10.0
    api_max_retries: int = 3
    api_retry_delay_seconds: float = 1.0

    # Recorded in snapshot metadata as the origin of the draft
    origin_url: str = "http://localhost:3000/registration"

    # --- Application ---
    debug: bool = False
    app_version: str = "0.1.0"


# Module-level singleton - import this throughout the codebase
settings = Settings()
