from functools import lru_cache

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO", alias="LOG_LEVEL")


class AppConfig(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    env: str = Field(default="development", alias="APP_ENV")
    host: str = Field(default="0.0.0.0", alias="APP_HOST")
    port: int = Field(default=8000, alias="APP_PORT")
    timezone: str = Field(default="America/New_York", alias="PRIMARY_TIMEZONE")

    database_url: str = Field(default="sqlite:///./data/slots.db", alias="DATABASE_URL")

    api_token: str | None = Field(default=None, alias="API_TOKEN")

    hold_duration_minutes: int = Field(default=7, alias="HOLD_DURATION_MINUTES")
    generation_window_days: int = Field(default=14, alias="GENERATION_WINDOW_DAYS")
    countdown_tick_seconds: float = Field(default=1.0, alias="COUNTDOWN_TICK_SECONDS")
    hold_sweep_interval_sec: int = Field(default=60, alias="HOLD_SWEEP_INTERVAL_SEC")
    release_retry_attempts: int = Field(default=3, alias="RELEASE_RETRY_ATTEMPTS")
    release_retry_backoff_sec: float = Field(default=0.5, alias="RELEASE_RETRY_BACKOFF_SEC")

    logging: LoggingConfig = Field(default_factory=LoggingConfig)


@lru_cache
def get_settings() -> AppConfig:
    return AppConfig()

