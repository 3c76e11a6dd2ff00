"""
Configuration and settings for the pbsnet API.
"""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Annotated, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Appwrite project. The API key doubles as the admin-route shared secret.
    appwrite_endpoint: Optional[str] = Field(default=None, env="APPWRITE_ENDPOINT")
    appwrite_project_id: Optional[str] = Field(
        default=None, env="APPWRITE_PROJECT_ID"
    )
    appwrite_api_key: Optional[str] = Field(default=None, env="APPWRITE_API_KEY")

    # Bearer tokens
    jwt_secret: Optional[str] = Field(default=None, env="JWT_SECRET")
    token_ttl_days: int = Field(default=7, env="TOKEN_TTL_DAYS")

    # Appwrite database / storage ids
    database_id: str = Field(default="central_db", env="DATABASE_ID")
    collection_profile: str = Field(default="user_profiles", env="COLLECTION_PROFILE")
    collection_system_data: str = Field(
        default="system_data", env="COLLECTION_SYSTEM_DATA"
    )
    bucket_id: str = Field(default="profile_pics", env="BUCKET_ID")

    # Frontend used for OAuth and password-recovery redirects
    frontend_url: str = Field(default="https://pbsnet.pages.dev", env="FRONTEND_URL")
    # Comma-separated origins, or a JSON list
    cors_origins: Annotated[list[str], NoDecode] = Field(
        default=["*"], env="CORS_ORIGINS"
    )

    # Profiles
    api_key_prefix: str = Field(default="pbsnet", env="API_KEY_PREFIX")
    search_page_size: int = Field(default=20, env="SEARCH_PAGE_SIZE")

    # Per-user write serialization (Redis when shared across processes)
    redis_url: Optional[str] = Field(default=None, env="REDIS_URL")
    lock_timeout_seconds: float = Field(default=10.0, env="LOCK_TIMEOUT_SECONDS")

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, env="USE_IN_MEMORY_BACKENDS"
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value):
        if isinstance(value, str):
            value = value.strip()
            if value.startswith("["):
                return json.loads(value)
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @property
    def uses_appwrite(self) -> bool:
        return bool(self.appwrite_endpoint) and not self.use_in_memory_backends


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
