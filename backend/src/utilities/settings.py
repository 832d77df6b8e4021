"""Process-wide settings for the event stream service."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from utilities.constants import (
    CLIENT_RETRY_INTERVAL,
    HISTORY_SIZE,
    MAX_STREAM_DURATION,
    PING_INTERVAL,
    REWIND,
    START_ID,
)


class Settings(BaseSettings):
    """Environment variables (prefix SSE_) and .env overrides."""

    model_config = SettingsConfigDict(
        env_prefix="SSE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    enable_event_stream: bool = Field(
        default=True,
        description="Advertise and serve SSE streams",
    )
    verbose_debugging: bool = Field(
        default=False,
        description="Log channel lifecycle events at INFO",
    )
    log_level: str = Field(default="INFO")
    default_topic: str = Field(
        default="default",
        description="Topic created at startup; empty to skip",
    )

    # default channel options (ms / counts)
    ping_interval: int = Field(default=PING_INTERVAL, ge=0)
    max_stream_duration: int = Field(default=MAX_STREAM_DURATION, ge=0)
    client_retry_interval: int = Field(default=CLIENT_RETRY_INTERVAL, ge=0)
    start_id: int = Field(default=START_ID)
    history_size: int = Field(default=HISTORY_SIZE, ge=0)
    rewind: int = Field(default=REWIND, ge=0)


@lru_cache
def get_settings() -> Settings:
    return Settings()
