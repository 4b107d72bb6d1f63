from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    DATABASE_URL: str = "postgresql+asyncpg://sada:sada_secret@db:5432/sada"
    RUN_MIGRATIONS_ON_STARTUP: bool = True
    LOG_LEVEL: str = "INFO"

    # Civil calendar used for schedule blocks, exceptions and day boundaries
    LOCAL_TIMEZONE: str = "America/Costa_Rica"

    DUPLICATE_WINDOW_MINUTES: int = 2
    MISSING_PAIR_GAP_MINUTES: int = 30

    # Fallbacks when the attendance_rules row is missing or has NULL columns
    DEFAULT_LATE_GRACE_MINUTES: int = 5
    DEFAULT_EARLY_LEAVE_GRACE_MINUTES: int = 5
    DEFAULT_MIN_GAP_MINUTES_TO_ALLOW_CHECKOUT: int = 20

    RANGE_MAX_DAYS: int = 62
    RANGE_MAX_DAYS_LIMIT: int = 365
    RANGE_PREVIEW_LIMIT: int = 50


settings = Settings()
