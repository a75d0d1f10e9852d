"""
Centralised settings loader.

Every value can be overridden through the environment or a local `.env`
file; unknown variables are ignored so shared env files do not crash boot.
"""

from __future__ import annotations
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# ------------------------------------------------------------------ #
#  Master settings model
# ------------------------------------------------------------------ #
class _Settings(BaseSettings):
    # ─── runtime / DB ────────────────────────────────────────────────
    env_name: str = "local"
    database_url: str = "sqlite+aiosqlite:///./coaching.db"
    auto_create_tables: bool = True
    log_level: str = "INFO"

    # ─── auth (tokens are minted by the external identity service) ──
    jwt_secret: str = "local-dev-secret-change-me-in-production"

    # ─── Gemini ─────────────────────────────────────────────────────
    gemini_api_key: str | None = None
    gemini_model: str = "models/gemini-2.0-flash"
    generation_temperature: float = 0.4
    generation_max_tokens: int = 16384

    # ─── USDA FoodData Central ──────────────────────────────────────
    usda_api_key: str = "DEMO_KEY"
    usda_base_url: str = "https://api.nal.usda.gov/fdc/v1"
    usda_timeout_seconds: float = Field(3.0, gt=0)

    # ─── abuse guard for plan (re)generation ────────────────────────
    plan_rate_limit_seconds: float = 60.0

    model_config = SettingsConfigDict(
        extra="ignore", env_file=".env", env_file_encoding="utf-8"
    )


# ------------------------------------------------------------------ #
#  Cached singleton accessor
# ------------------------------------------------------------------ #
@lru_cache
def _cached() -> _Settings:  # pragma: no cover
    return _Settings()  # type: ignore[call-arg]


settings: _Settings = _cached()
