from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class APISettings(BaseSettings):
    key: str = ""

    model_config = SettingsConfigDict(env_prefix="API_")

    @model_validator(mode="after")
    def validate_credentials_provided(self) -> "APISettings":
        if not self.key:
            raise ValueError("Required credential not provided: API_KEY")
        return self


class ServerSettings(BaseSettings):
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)
    environment: str = "development"

    model_config = SettingsConfigDict(env_prefix="SERVER_")


class CORSSettings(BaseSettings):
    origins: str = "http://localhost:5173,http://localhost:3000"

    model_config = SettingsConfigDict(env_prefix="CORS_")


class DatabaseSettings(BaseSettings):
    path: str = "./db/logistics.db"

    model_config = SettingsConfigDict(env_prefix="DB_")


class StreamSettings(BaseSettings):
    """Server-sent event stream configuration."""

    chat_heartbeat_seconds: float = Field(
        default=25.0,
        ge=1.0,
        le=60.0,
        description="Interval between ': ping' comment frames on chat streams",
    )
    tracking_heartbeat_seconds: float = Field(
        default=15.0,
        ge=1.0,
        le=60.0,
        description="Interval between ': keep-alive' comment frames on tracking streams",
    )
    max_queue_size: int = Field(
        default=100,
        ge=1,
        le=10_000,
        description="Frames buffered per connection before new frames are dropped",
    )

    model_config = SettingsConfigDict(env_prefix="STREAM_")


class SimulationSettings(BaseSettings):
    enabled: bool = True
    tick_interval_seconds: float = Field(default=2.0, ge=0.1, le=60.0)
    min_elapsed_seconds: float = Field(
        default=1.0,
        ge=0.0,
        le=60.0,
        description="Ticks closer together than this are skipped for a vehicle",
    )
    random_seed: int | None = None
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["text", "json"] = "text"

    model_config = SettingsConfigDict(env_prefix="SIM_")


class NotificationSettings(BaseSettings):
    webhook_url: str = ""
    timeout_seconds: float = Field(default=5.0, ge=0.5, le=60.0)
    max_retries: int = Field(default=3, ge=1, le=10)

    model_config = SettingsConfigDict(env_prefix="NOTIFY_")

    @field_validator("webhook_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("Notification webhook URL must start with http:// or https://")
        return v.rstrip("/")


class RedisSettings(BaseSettings):
    """Optional Redis relay for fanning bus events out across worker processes."""

    enabled: bool = False
    host: str = "localhost"
    port: int = 6379
    password: str = ""
    channel: str = "logistics-events"

    model_config = SettingsConfigDict(env_prefix="REDIS_")


class Settings(BaseSettings):
    api: APISettings = Field(default_factory=APISettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    stream: StreamSettings = Field(default_factory=StreamSettings)
    simulation: SimulationSettings = Field(default_factory=SimulationSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)

    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        case_sensitive=False,
    )


def get_settings() -> Settings:
    """Load and validate settings from environment variables."""
    return Settings()
