"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

from bacchus.domain.bac import BacThresholds, ModelParameters

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str | None = None
    supabase_service_key: str | None = None
    cache_dir: str = ".bacchus-cache"
    elimination_rate_per_hour: float = 0.15
    legal_limit: float = 0.5
    sober_threshold: float = 0.01
    safety_factor: float = 1.05
    series_step_minutes: int = 15
    adjust_for_drinking_frequency: bool = False
    caution_threshold: float = 0.5
    penal_low_threshold: float = 0.8
    penal_high_threshold: float = 1.5
    critical_threshold: float = 2.0
    inactivity_threshold_hours: float = 12.0
    sweep_interval_seconds: int = 3600
    persistence_workers: int = 2
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_prefix="BACCHUS_",
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @property
    def remote_sync_enabled(self) -> bool:
        """Return True when Supabase credentials are configured."""
        return bool(self.supabase_url and self.supabase_service_key)


def model_parameters(settings: Settings) -> ModelParameters:
    """Build BAC model parameters from settings."""
    return ModelParameters(
        elimination_rate=settings.elimination_rate_per_hour,
        legal_limit=settings.legal_limit,
        sober_threshold=settings.sober_threshold,
        safety_factor=settings.safety_factor,
        step_minutes=settings.series_step_minutes,
        adjust_for_frequency=settings.adjust_for_drinking_frequency,
        thresholds=BacThresholds(
            caution=settings.caution_threshold,
            penal_low=settings.penal_low_threshold,
            penal_high=settings.penal_high_threshold,
            critical=settings.critical_threshold,
        ),
    )
