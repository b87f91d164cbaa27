"""Configuration management using Pydantic Settings"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Primary store
    database_url: str = "sqlite+aiosqlite:///./bnpl-tracker.db"
    schema_version: int = 2

    # Backup mirror
    backup_path: str = "./bnpl-tracker-backup.json"
    backup_max_bytes: int = 5 * 1024 * 1024

    # Overdue sweep
    overdue_sweep_interval_seconds: float = 3600.0

    # Service
    service_name: str = "bnpl-tracker"
    log_level: str = "INFO"


settings = Settings()
