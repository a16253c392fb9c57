"""Runway engine configuration management using Pydantic Settings."""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # Model defaults
    default_currency: str = Field(default="PHP", alias="RUNWAY_DEFAULT_CURRENCY")
    default_period_months: int = Field(
        default=24, ge=1, le=600, alias="RUNWAY_DEFAULT_PERIOD_MONTHS"
    )

    # Projection defaults
    default_projection_months: int = Field(
        default=12, ge=1, le=600, alias="RUNWAY_DEFAULT_PROJECTION_MONTHS"
    )
    scenario_projection_months: int = Field(
        default=24, ge=1, le=600, alias="RUNWAY_SCENARIO_MONTHS"
    )

    # Tax behaviour
    floor_income_tax: bool = Field(default=False, alias="RUNWAY_FLOOR_INCOME_TAX")

    # Funding alerts
    debt_ratio_limit: float = Field(
        default=0.5, ge=0, le=1, alias="RUNWAY_DEBT_RATIO_LIMIT"
    )
    funding_alert_threshold: float = Field(
        default=1000, ge=0, alias="RUNWAY_FUNDING_ALERT_THRESHOLD"
    )

    # Logging Configuration
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @field_validator("default_currency")
    @classmethod
    def validate_default_currency(cls, v):
        """Validate the default currency is a three letter code."""
        if not isinstance(v, str) or len(v) != 3 or not v.isalpha():
            raise ValueError("RUNWAY_DEFAULT_CURRENCY must be a 3-letter currency code")
        return v.upper()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        allowed_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed_levels:
            raise ValueError(f"LOG_LEVEL must be one of {allowed_levels}")
        return v.upper()


def get_settings(env_file: Optional[str] = None) -> Settings:
    """Get engine settings instance."""
    if env_file is not None:
        return Settings(_env_file=env_file)
    return Settings()


_settings: Optional[Settings] = None


def get_global_settings() -> Settings:
    """Get or create global settings instance."""
    global _settings
    if _settings is None:
        _settings = get_settings()
    return _settings


def reset_global_settings() -> None:
    """Reset global settings instance (useful for testing)."""
    global _settings
    _settings = None
