"""Configuration management using Pydantic Settings."""

from datetime import date
from enum import Enum
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RefreshPolicy(str, Enum):
    """When the most recently completed month is (re)collected."""

    ALWAYS_REFRESH_CURRENT = "always-refresh-current"
    REFRESH_IF_STALE = "refresh-if-stale"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="KPI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    storage_type: Literal["local", "s3"] = "local"
    storage_local_path: str = "./data"
    storage_s3_bucket: str = "kpi"
    storage_s3_prefix: str = ""
    storage_s3_endpoint: str | None = None  # For MinIO or localstack
    storage_s3_region: str = "us-east-1"
    storage_s3_access_key: str | None = None
    storage_s3_secret_key: str | None = None

    # Documents
    applications_path: str = "applications.json"
    queries_path: str = "queries.json"
    metrics_path: str = "metrics.json"
    metrics_output_path: str | None = None  # Defaults to metrics_path

    # Analytics
    analytics_base_url: str = "https://api.applicationinsights.io/v1/apps"
    analytics_timeout: float = 30.0
    analytics_verify_tls: bool = True

    # Reconciliation
    refresh_policy: RefreshPolicy = RefreshPolicy.ALWAYS_REFRESH_CURRENT
    epoch_floor: date = date(2020, 1, 1)
    max_workers: int = Field(default=16, ge=1)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "console"] = "console"

    @field_validator("epoch_floor")
    @classmethod
    def _floor_to_month(cls, value: date) -> date:
        return value.replace(day=1)

    @property
    def output_path(self) -> str:
        return self.metrics_output_path or self.metrics_path


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (for testing)."""
    global _settings
    _settings = None
