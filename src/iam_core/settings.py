"""
iam_core.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for all layers.
- Hide secrets from repr/logging (JWT signing secret).
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Loaded once at process start; values are treated as immutable afterwards.
    Durations accept seconds (`3600`) or ISO-8601 (`PT1H`).
    """

    model_config = SettingsConfigDict(env_prefix="IAM_", case_sensitive=False)

    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "iam-core"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Tokens
    jwt_alg: str = "HS256"
    jwt_issuer: str = "iam-core"
    jwt_audience: str = "iam-api"
    jwt_secret: str = Field(default="dev-only-signing-secret-change-me-in-prod", repr=False)
    access_token_ttl: timedelta = timedelta(hours=1)
    refresh_token_ttl: timedelta = timedelta(days=7)

    # API keys: None means newly generated keys never expire.
    api_key_ttl: timedelta | None = None

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./iam.db"
    seed_default_roles: bool = True

    # Audit
    audit_queue_size: int = Field(default=1000, ge=1)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each request dependency.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# The signing secret and TTLs are copied into `auth.tokens.TokenConfig` at startup;
# nothing in the auth core reads settings lazily per request.
