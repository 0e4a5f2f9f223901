"""
Application configuration using Pydantic Settings.
All environment variables are loaded here with sensible defaults.

Provider credentials are NOT read from the environment - they live in the
settings store (see imgup.settings_store) so they can be edited at runtime.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Environment
    environment: str = "dev"
    service_name: str = "imgup-api"
    log_level: str = "INFO"

    # Persisted provider settings (JSON blob owned by the settings store)
    settings_file: str = "data/uploader-settings.json"

    # Uploads
    max_upload_bytes: int = 20 * 1024 * 1024  # 20 MB per image

    # Object storage transport
    storage_connect_timeout: float = 5.0  # seconds
    storage_read_timeout: float = 30.0  # seconds

    # Run the connectivity probe when the app starts
    validate_on_startup: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Global settings instance
settings = Settings()
