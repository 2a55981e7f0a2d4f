"""Configuration management"""

from functools import lru_cache
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "Settlement Sheet"
    debug: bool = False
    api_prefix: str = "/api/v1"
    log_level: str = "INFO"

    # Database
    database_url: str

    # JWT Authentication
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # Redis
    redis_url: str = "redis://localhost:6379/0"
    idempotency_ttl_seconds: int = 86400

    # CORS
    allowed_origins: List[str] = []

    # Autosave (trailing debounce, seconds)
    autosave_delay_seconds: float = 1.0
    archived_autosave_delay_seconds: float = 0.5

    # Comments
    max_comment_images: int = 10
    owner_display_name: str = "총무"

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore"
    )

    @field_validator("secret_key")
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        """Validate secret key is at least 32 characters"""
        if len(v) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters long")
        return v

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL is PostgreSQL (or sqlite for local runs)"""
        if not v.startswith(("postgresql", "sqlite")):
            raise ValueError(
                "DATABASE_URL must be a PostgreSQL or sqlite connection string"
            )
        return v

    @field_validator("autosave_delay_seconds", "archived_autosave_delay_seconds")
    @classmethod
    def validate_delay(cls, v: float) -> float:
        """Autosave delays cannot be negative"""
        if v < 0:
            raise ValueError("Autosave delay must be >= 0")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
