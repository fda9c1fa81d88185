"""Settings for the Huddle backend with observability configuration."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_field(default, *env_names: str):
    if env_names:
        alias = AliasChoices(*env_names) if len(env_names) > 1 else env_names[0]
        return Field(default=default, validation_alias=alias)
    return Field(default=default)


class Settings(BaseSettings):
    redis_url: str = _env_field("redis://localhost:6379/0", "REDIS_URL")
    # Empty means "no database": repositories keep their data in memory.
    postgres_url: Optional[str] = _env_field(None, "POSTGRES_URL", "DATABASE_URL")
    postgres_min_pool_size: int = _env_field(1, "POSTGRES_MIN_POOL_SIZE")
    postgres_max_pool_size: int = _env_field(10, "POSTGRES_MAX_POOL_SIZE")
    secret_key: str = _env_field("huddle-dev-secret", "SECRET_KEY")

    environment: str = _env_field("production", "ENV", "APP_ENV", "ENVIRONMENT")
    obs_enabled: bool = _env_field(True, "OBS_ENABLED")
    obs_log_level: str = _env_field("INFO", "LOG_LEVEL")
    obs_log_sampling_rate_info: float = _env_field(0.1, "LOG_SAMPLING_RATE_INFO")
    service_name: str = _env_field("huddle-api", "SERVICE_NAME")
    git_commit: str = _env_field("unknown", "GIT_COMMIT", "COMMIT_SHA", "SOURCE_VERSION")
    cors_allow_origins: Any = _env_field((), "CORS_ALLOW_ORIGINS")

    # Chat and participation knobs
    history_page_size: int = _env_field(50, "HISTORY_PAGE_SIZE")
    message_max_length: int = _env_field(4000, "MESSAGE_MAX_LENGTH")
    send_rate_limit_per_minute: int = _env_field(60, "SEND_RATE_LIMIT_PER_MINUTE")

    # Live channel client reconnect policy (fixed delay between attempts)
    live_reconnect_attempts: int = _env_field(5, "LIVE_RECONNECT_ATTEMPTS")
    live_reconnect_delay_seconds: float = _env_field(3.0, "LIVE_RECONNECT_DELAY_SECONDS")

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        case_sensitive=False,
        env_nested_delimiter="__",
    )

    def is_prod(self) -> bool:
        return self.environment.lower() in ("prod", "production", "live")

    def is_dev(self) -> bool:
        return self.environment.lower() in ("dev", "development")

    def database_enabled(self) -> bool:
        return bool((self.postgres_url or "").strip())

    @field_validator("cors_allow_origins", mode="before")
    def _split_cors(cls, value):  # type: ignore[override]
        if value in (None, ""):
            return ()
        if isinstance(value, str):
            return tuple(part.strip() for part in value.split(",") if part.strip())
        if isinstance(value, (list, tuple, set)):
            return tuple(str(item).strip() for item in value if str(item).strip())
        return ()


def _normalise_level(level: str) -> str:
    return level.upper()


settings = Settings()
settings.obs_log_level = _normalise_level(settings.obs_log_level)
