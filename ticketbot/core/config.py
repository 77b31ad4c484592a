from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DEPARTMENTS = "Human Resources,Finance,Marketing,Post Production,Editing"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: float = 10.0
    DB_POOL_RECYCLE: int = 1800

    TRANSPORT_BASE_URL: str = ""
    TRANSPORT_API_KEY: str = ""
    REQUEST_TIMEOUT_SEC: float = 20.0

    WEBHOOK_SECRET: str | None = None
    ADMIN_API_KEY: str = "change-me"

    ENABLE_DATABASE_STORAGE: bool = True
    ENABLE_TEXT_LOGGING: bool = True
    ENABLE_IMAGE_DOWNLOAD: bool = True
    MEDIA_ENCRYPTION_KEY: str = "change-me"
    MEDIA_STORAGE_PATH: str = "encrypted_media"

    DEPARTMENTS: str = DEFAULT_DEPARTMENTS
    SESSION_TIMEOUT_MIN: int = 30
    MESSAGE_STALENESS_SEC: int = 300
    DEDUP_HIGH_WATER: int = 1000
    DEDUP_LOW_WATER: int = 500
    RESOLVER_TIMEOUT_SEC: float = 10.0


@dataclass(frozen=True)
class IntakeConfig:
    """Read-only options threaded into the intake components."""

    enable_database_storage: bool = True
    enable_text_logging: bool = True
    enable_image_download: bool = True
    media_storage_path: str = "encrypted_media"
    departments: tuple[str, ...] = field(
        default_factory=lambda: tuple(DEFAULT_DEPARTMENTS.split(","))
    )
    session_timeout: timedelta = timedelta(minutes=30)
    staleness_window: timedelta = timedelta(minutes=5)
    dedup_high_water: int = 1000
    dedup_low_water: int = 500
    resolver_timeout_sec: float = 10.0

    @classmethod
    def from_settings(cls, source: Settings) -> IntakeConfig:
        departments = tuple(
            name.strip() for name in source.DEPARTMENTS.split(",") if name.strip()
        )
        return cls(
            enable_database_storage=source.ENABLE_DATABASE_STORAGE,
            enable_text_logging=source.ENABLE_TEXT_LOGGING,
            enable_image_download=source.ENABLE_IMAGE_DOWNLOAD,
            media_storage_path=source.MEDIA_STORAGE_PATH,
            departments=departments,
            session_timeout=timedelta(minutes=source.SESSION_TIMEOUT_MIN),
            staleness_window=timedelta(seconds=source.MESSAGE_STALENESS_SEC),
            dedup_high_water=source.DEDUP_HIGH_WATER,
            dedup_low_water=source.DEDUP_LOW_WATER,
            resolver_timeout_sec=source.RESOLVER_TIMEOUT_SEC,
        )


settings = Settings()
