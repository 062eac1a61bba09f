"""Typed settings for the scheduling service.

Every section reads its own environment variables through pydantic-settings;
`get_settings()` builds them once per process.

Usage:
    from agreed_time.config import get_settings
    limit = get_settings().scheduling.max_participants
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _parse_bool(v):
    if isinstance(v, str):
        return v.lower() in ("1", "true", "yes")
    return bool(v)


class PostgresSettings(BaseSettings):
    """Database location and pool sizing.

    `DATABASE_URL` wins when set; otherwise the DSN is assembled from the
    `POSTGRES_*` variables.
    """

    model_config = SettingsConfigDict(env_prefix="POSTGRES_", extra="ignore", populate_by_name=True)

    url: str = Field(default="", validation_alias="DATABASE_URL")
    host: str = "postgres"
    port: int = 5432
    user: str = "postgres"
    password: str = ""
    database: str = Field(default="agreed_time", validation_alias="POSTGRES_DB")
    pool_min_size: int = Field(default=2, ge=0, description="Connections kept open")
    pool_max_size: int = Field(default=10, gt=0, description="Upper bound on open connections")
    pool_timeout: float = Field(default=30.0, gt=0, description="Seconds to wait for a free connection")

    def get_dsn(self) -> str:
        if self.url:
            return self.url
        return (
            f"host={self.host} port={self.port} dbname={self.database} "
            f"user={self.user} password={self.password}"
        )


class ServerSettings(BaseSettings):
    """Listen address for `python -m agreed_time serve`."""

    model_config = SettingsConfigDict(extra="ignore")

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)

    @property
    def addr(self) -> str:
        return f"{self.host}:{self.port}"


class CorsSettings(BaseSettings):
    """Browser origins allowed to call the API."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    origins_raw: str = Field(default="http://localhost:4321", validation_alias="ALLOWED_ORIGINS")

    @property
    def origins(self) -> list[str]:
        return [part.strip() for part in self.origins_raw.split(",") if part.strip()]

    @property
    def allow_credentials(self) -> bool:
        # browsers refuse credentialed requests against "*"
        return "*" not in self.origins


class RateLimitSettings(BaseSettings):
    """Per-client request rate limiting."""

    model_config = SettingsConfigDict(env_prefix="RATE_LIMIT_", extra="ignore")

    enabled: bool = Field(default=True, description="Enable the rate limit middleware")
    max_requests: int = Field(default=60, gt=0, description="Requests allowed per window")
    window_seconds: float = Field(default=60.0, gt=0, description="Window length in seconds")

    @field_validator("enabled", mode="before")
    @classmethod
    def coerce_enabled(cls, v):
        return _parse_bool(v)


class SchedulingSettings(BaseSettings):
    """Event and participant limits, plus expiry of old events."""

    model_config = SettingsConfigDict(env_prefix="SCHEDULING_", extra="ignore")

    max_participants: int = Field(default=10, gt=0, description="Participants allowed per event")
    max_batch_tokens: int = Field(default=50, gt=0, description="Tokens accepted by batch-check")
    retention_days: int = Field(default=7, gt=0, description="Days an event is kept after creation")
    cleanup_interval_sec: int = Field(default=3600, gt=0, description="Seconds between expiry runs")
    cleanup_initial_delay_sec: int = Field(default=60, ge=0, description="Delay before first expiry run")


class DebugSettings(BaseSettings):
    """`REQUEST_DEBUG=1` logs every request at DEBUG."""

    model_config = SettingsConfigDict(extra="ignore")

    request: bool = Field(default=False, alias="request_debug")

    @field_validator("request", mode="before")
    @classmethod
    def coerce_request(cls, v):
        return _parse_bool(v)


class FeatureSettings(BaseSettings):
    """Switches for the parts of startup that need a database."""

    model_config = SettingsConfigDict(extra="ignore")

    database: bool = Field(default=True, alias="enable_db")
    cleanup: bool = Field(default=True, alias="enable_cleanup")

    @field_validator("database", "cleanup", mode="before")
    @classmethod
    def coerce_flags(cls, v):
        return _parse_bool(v)


class Settings:
    """All configuration sections.

    A plain class rather than one BaseSettings so each section keeps its
    own env prefix.
    """

    def __init__(self) -> None:
        self.postgres = PostgresSettings()
        self.server = ServerSettings()
        self.cors = CorsSettings()
        self.rate_limit = RateLimitSettings()
        self.scheduling = SchedulingSettings()
        self.debug = DebugSettings()
        self.features = FeatureSettings()


@lru_cache
def get_settings() -> Settings:
    return Settings()


def clear_settings_cache() -> None:
    """Forget the cached settings so the next call re-reads the environment."""
    get_settings.cache_clear()
