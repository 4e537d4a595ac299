"""
Matchcore — Application Configuration

Loads all configuration from environment variables (and an optional .env file)
using Pydantic Settings.  A cached ``get_settings()`` helper is provided so that
FastAPI dependency-injection (and any other call-site) always receives the same
validated instance without re-parsing the environment on every request.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the matching core."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------ #
    # Gemini LLM (scoring oracle)
    # ------------------------------------------------------------------ #
    GEMINI_API_KEY: str
    GEMINI_MODEL_PRIMARY: str = "gemini-3-pro-preview"
    GEMINI_MODEL_FALLBACK: str = "gemini-3-flash-preview"
    GEMINI_MODEL_STABLE: str = "gemini-2.5-flash"
    GEMINI_MAX_OUTPUT_TOKENS: int = 2048

    # ------------------------------------------------------------------ #
    # Database – Cloud SQL via Unix socket or private IP
    # ------------------------------------------------------------------ #
    DATABASE_URL: str
    DB_USER: str = "matchcore_user"
    DB_PASSWORD: str = ""
    DB_NAME: str = "matchcore"

    # ------------------------------------------------------------------ #
    # Compatibility scoring
    # ------------------------------------------------------------------ #
    CULTURAL_CONTEXT: str = "madhubani"
    COMPATIBILITY_CACHE_TTL_DAYS: int = 30

    # ------------------------------------------------------------------ #
    # Recommendations
    # ------------------------------------------------------------------ #
    RECOMMENDATION_TTL_DAYS: int = 7
    MIN_RECOMMENDATION_SCORE: float = 60.0
    CANDIDATE_OVERFETCH_FACTOR: int = 2
    SCORING_CONCURRENCY: int = 5
    CACHED_RECOMMENDATIONS_LIMIT: int = 50
    TRENDING_WINDOW_DAYS: int = 7

    # ------------------------------------------------------------------ #
    # Preference learning
    # ------------------------------------------------------------------ #
    DEFAULT_LEARNED_AGE_MIN: int = 22
    DEFAULT_LEARNED_AGE_MAX: int = 35

    # ------------------------------------------------------------------ #
    # Runtime environment
    # ------------------------------------------------------------------ #
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    REQUEST_TIMEOUT_SECONDS: float = 70.0

    # ------------------------------------------------------------------ #
    # Google Cloud Platform
    # ------------------------------------------------------------------ #
    GCP_PROJECT_ID: str = ""
    GCP_REGION: str = "asia-south1"  # Mumbai
    CLOUD_SQL_INSTANCE_CONNECTION: str = ""
    CLOUD_SQL_USE_UNIX_SOCKET: bool = True

    # ------------------------------------------------------------------ #
    # CORS
    # ------------------------------------------------------------------ #
    ALLOWED_ORIGINS: str = "*"

    # ------------------------------------------------------------------ #
    # Derived helpers
    # ------------------------------------------------------------------ #
    @property
    def allowed_origins_list(self) -> list[str]:
        """Return ALLOWED_ORIGINS as a list split on commas."""
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",")]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @field_validator("MIN_RECOMMENDATION_SCORE")
    @classmethod
    def _score_must_be_between_0_and_100(cls, v: float) -> float:
        if not 0.0 <= v <= 100.0:
            raise ValueError(f"Score threshold must be between 0 and 100, got {v}")
        return v

    @field_validator(
        "COMPATIBILITY_CACHE_TTL_DAYS",
        "RECOMMENDATION_TTL_DAYS",
        "CANDIDATE_OVERFETCH_FACTOR",
        "SCORING_CONCURRENCY",
        "TRENDING_WINDOW_DAYS",
    )
    @classmethod
    def _must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Value must be at least 1, got {v}")
        return v

    @model_validator(mode="after")
    def _learned_age_range_must_be_ordered(self) -> "Settings":
        if self.DEFAULT_LEARNED_AGE_MIN > self.DEFAULT_LEARNED_AGE_MAX:
            raise ValueError(
                "DEFAULT_LEARNED_AGE_MIN must not exceed DEFAULT_LEARNED_AGE_MAX"
            )
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached, validated ``Settings`` instance.

    Using ``@lru_cache`` guarantees the .env file is read and validated
    exactly once per process lifetime.  Import this function anywhere you
    need access to configuration::

        from matchcore.config import get_settings
        settings = get_settings()
    """
    return Settings()  # type: ignore[call-arg]
