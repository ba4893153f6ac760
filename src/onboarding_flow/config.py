"""
Onboarding Flow - Configuration and settings.

Everything tunable about the engine lives here: draft time-to-live,
where drafts are stored, and the gamification constants.
"""

from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class OnboardingSettings(BaseSettings):
    """Settings for the onboarding flow engine, loaded from env / .env."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    onboarding_env: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Drafts
    draft_ttl_days: int = 7
    draft_dir: Path = Path("drafts")
    draft_key_prefix: str = "onboarding_draft"

    # Gamification
    role_selection_points: int = 10
    points_per_level: int = 200

    # Supabase draft store (optional)
    supabase_url: str | None = None
    supabase_service_role_key: str | None = None
    supabase_drafts_table: str = "onboarding_drafts"

    @property
    def draft_ttl(self) -> timedelta:
        return timedelta(days=self.draft_ttl_days)

    @property
    def is_development(self) -> bool:
        return self.onboarding_env == "development"


@lru_cache
def get_settings() -> OnboardingSettings:
    """Get cached settings instance."""
    return OnboardingSettings()


class _SettingsProxy:
    """Lazy proxy for settings to avoid loading .env at import time."""

    _instance: OnboardingSettings | None = None

    def __getattr__(self, name: str):
        if self._instance is None:
            self._instance = get_settings()
        return getattr(self._instance, name)


settings = _SettingsProxy()
