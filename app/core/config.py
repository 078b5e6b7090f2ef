from __future__ import annotations

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="APP_",
        case_sensitive=False,
    )

    env: str = Field(default="development")
    debug: bool = Field(default=False)
    docs_enabled: bool = Field(default=True)
    log_level: str = Field(default="INFO")

    secret_key: str = Field(min_length=32)
    cors_origins: list[str] = Field(default_factory=list)
    trusted_hosts: list[str] = Field(default_factory=lambda: ["localhost", "127.0.0.1"])

    session_cookie: str = Field(default="telemetry_history_session", min_length=1, max_length=64)
    session_max_age_seconds: int = Field(default=60 * 60 * 8, ge=60, le=60 * 60 * 24 * 30)

    backend_url: AnyHttpUrl = Field(default="http://localhost:5000")
    backend_token: str | None = Field(default=None)
    backend_timeout_seconds: float = Field(default=10.0, ge=1.0, le=60.0)

    timezone: str = Field(default="UTC", min_length=1, max_length=64)

    day_group_hours: int = Field(default=4, ge=1, le=12)
    month_group_days: int = Field(default=2, ge=1, le=2)

    max_bars: int = Field(default=20, ge=1, le=500)
    max_measurements: int = Field(default=3, ge=1, le=10)

    chart_bar_width: float = Field(default=16.0, gt=0)
    chart_bar_gap: float = Field(default=28.0, ge=0)
    chart_height: float = Field(default=200.0, gt=0)
    chart_headroom: float = Field(default=1.2, ge=1.0, le=3.0)
    chart_min_scale: float = Field(default=1.0, gt=0)

    view_registry_size: int = Field(default=256, ge=1, le=100_000)

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone '{v}'") from e
        return v

    @field_validator("day_group_hours")
    @classmethod
    def _validate_day_group(cls, v: int) -> int:
        if 24 % v != 0:
            raise ValueError("day_group_hours must divide 24")
        return v

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, v: str) -> str:
        return v.strip().upper() or "INFO"

    @property
    def is_production(self) -> bool:
        return self.env.lower() == "production"

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def load_settings() -> Settings:
    settings = Settings()
    if not settings.cors_origins:
        settings.cors_origins = ["http://localhost:3000", "http://localhost:8000"]
    return settings
