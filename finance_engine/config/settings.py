"""
Configuration Management for the Finance Engine

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: Engine functions never read configuration themselves.
They take their horizons and caps as keyword arguments with sensible
defaults; only the orchestrator resolves get_settings() and passes values
down. That keeps every engine call a pure function of its arguments.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Policy horizons and caps a deployment may tune."""

    model_config = SettingsConfigDict(
        env_prefix="FINANCE_ENGINE_",
        extra="ignore"
    )

    bill_risk_horizon_days: int = Field(
        default=45,
        ge=1,
        le=365,
        description="Bills due further out than this produce no risk alert"
    )
    recurring_lookback_days: int = Field(
        default=210,
        ge=30,
        description="Purchase history window for recurring detection"
    )
    recurring_max_candidates: int = Field(
        default=8,
        ge=1,
        description="Recurring candidates returned, best first"
    )
    spend_window_days: int = Field(
        default=90,
        ge=1,
        description="Window used to estimate monthly variable spend"
    )
    forecast_windows: str = Field(
        default="30,90,365",
        description="Comma-separated forecast horizons in days"
    )
    planning_task_limit: int = Field(
        default=12,
        ge=1,
        description="Maximum action-task drafts per apply"
    )

    # Anomaly detection
    anomaly_std_multiplier: float = Field(
        default=2.5,
        gt=0.0,
        description="Purchases above mean + k*std are anomalies"
    )
    anomaly_min_amount: float = Field(
        default=50.0,
        ge=0.0,
        description="Purchases at or below this never count as anomalies"
    )

    @field_validator("forecast_windows")
    @classmethod
    def validate_forecast_windows(cls, v: str) -> str:
        """Every window must be a positive whole number of days."""
        parts = [part.strip() for part in v.split(",") if part.strip()]
        if not parts or not all(part.isdigit() and int(part) > 0 for part in parts):
            raise ValueError(f"Invalid forecast windows: {v!r}")
        return v

    @property
    def forecast_windows_list(self) -> list[int]:
        """Get forecast windows as a list of ints."""
        return [int(part.strip()) for part in self.forecast_windows.split(",") if part.strip()]


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level for local structured logs"
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def engine(self) -> EngineSettings:
        return EngineSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings groups load.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("engine", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError:
            results[name] = False

    return results
