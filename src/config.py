"""Application configuration loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file)."""

    # --- App ---
    app_name: str = "HeartSense"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # development | staging | production

    # --- Host ---
    platform: str = "ios"  # ios | android | web

    # --- HealthKit bridge ---
    healthkit_bridge_url: str = "http://127.0.0.1:8765"
    healthkit_bridge_token: str = ""
    healthkit_bridge_timeout_seconds: float = 10.0

    # --- Sync ---
    sync_config_path: str = ""  # empty = bundled sync_config.yaml
    user_id: str = ""  # when set, main runs the daily sync and heart-rate alerts for this user

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "env_prefix": "HEARTSENSE_"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
