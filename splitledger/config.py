from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings.

    Loaded from environment variables (APP_ENV, DATABASE_URL, ...) and an
    optional .env file in the working directory.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_env: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        description="Deployment environment"
    )
    app_port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port used when running the API directly"
    )

    database_url: str = Field(
        default="sqlite:///./splitledger.db",
        description="SQLAlchemy database URL"
    )
    database_echo: bool = Field(
        default=False,
        description="Echo emitted SQL to the log"
    )
    database_timeout_seconds: int = Field(
        default=30,
        ge=1,
        le=600,
        description="SQLite busy timeout / connection pool checkout timeout"
    )

    log_level: str = Field(
        default="INFO",
        description="Root log level"
    )
    log_json: Optional[bool] = Field(
        default=None,
        description="Render logs as JSON; defaults to JSON outside development"
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level {v!r}")
        return level

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def render_json_logs(self) -> bool:
        if self.log_json is not None:
            return self.log_json
        return self.app_env != "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload after changing the environment.
    """
    return Settings()
