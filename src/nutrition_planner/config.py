"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    admin_token: str
    coach_ids: str | None = None
    generator_base_url: str
    generator_api_key: str
    generator_timeout_seconds: float = 60.0
    lock_duration_days: int = 7
    min_liked_ingredients: int = 5
    daily_min_liked_ingredients: int = 3
    snapshot_on_lock: bool = True
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_coach_ids(raw: str | None) -> set[str] | None:
    """Parse the coach allow-list; None means any approver is accepted."""
    if raw is None:
        return None
    cleaned = raw.strip()
    if cleaned in {"", "*"}:
        return None
    ids = {chunk.strip() for chunk in cleaned.split(",") if chunk.strip()}
    return ids or None
