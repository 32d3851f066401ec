"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the standalone vault
worker and the scheduled-event handler share one configuration surface.
Missing Bungie credentials fail validation, which keeps every entrypoint from
starting with a broken token refresh path.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

import os

from pydantic import AnyHttpUrl, Field, HttpUrl, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class BungieSettings(BaseSettings):
    """Credentials and endpoints for the Bungie.net platform API."""

    api_key: str = Field(..., validation_alias="BUNGIE_API_KEY")
    client_id: str = Field(..., validation_alias="BUNGIE_CLIENT_ID")
    client_secret: str = Field(..., validation_alias="BUNGIE_CLIENT_SECRET")
    redirect_uri: Optional[AnyHttpUrl] = Field(
        None,
        validation_alias="BUNGIE_REDIRECT_URI",
        description="Redirect URI registered with the Bungie application.",
    )
    base_url: str = Field(
        "https://www.bungie.net", validation_alias="BUNGIE_BASE_URL"
    )
    vault_capacity: int = Field(500, validation_alias="BUNGIE_VAULT_CAPACITY")
    http_timeout_seconds: float = Field(10.0, validation_alias="BUNGIE_HTTP_TIMEOUT")

    @field_validator("api_key", "client_id", "client_secret")
    @classmethod
    def _require_value(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value.strip()


class StorageSettings(BaseSettings):
    """Selects the key-value backend holding user records."""

    backend: Literal["sqlite", "dynamodb"] = Field(
        "sqlite", validation_alias="STORAGE_BACKEND"
    )
    sqlite_db_path: str = Field(
        "data/autovault.db", validation_alias="SQLITE_DB_PATH"
    )


class AWSSettings(BaseSettings):
    """Settings for AWS services used when running on DynamoDB."""

    region_name: str = Field("us-east-1", validation_alias="AWS_REGION")
    dynamodb_table_name: Optional[str] = Field(
        None, validation_alias="DYNAMODB_TABLE_NAME"
    )


class SchedulerSettings(BaseSettings):
    """Timing and fan-out limits for the batch scheduler."""

    enabled: bool = Field(True, validation_alias="SCHEDULER_ENABLED")
    interval_seconds: float = Field(15.0, validation_alias="SCHEDULER_INTERVAL_SECONDS")
    max_concurrency: int = Field(4, validation_alias="SCHEDULER_MAX_CONCURRENCY")

    @field_validator("interval_seconds", "max_concurrency")
    @classmethod
    def _positive(cls, value):
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Comma-separated secrets used to derive the keys for encrypting "
            "stored tokens. The first entry encrypts; every entry may decrypt."
        ),
    )
    admin_api_token: Optional[str] = Field(
        None,
        validation_alias="ADMIN_API_TOKEN",
        description="Shared token guarding the trigger and revoke endpoints.",
    )

    @property
    def token_encryption_secrets(self) -> tuple[str, ...]:
        """Support providing secrets as a comma-separated string."""
        if not self.token_encryption_secret:
            return ()
        return tuple(
            secret.strip()
            for secret in self.token_encryption_secret.split(",")
            if secret.strip()
        )


class OAuthSettings(BaseSettings):
    """OAuth flow configuration."""

    state_ttl_seconds: int = Field(900, validation_alias="OAUTH_STATE_TTL")


class AppSettings(BaseSettings):
    """Root settings object for the service."""

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    frontend_base_url: Optional[HttpUrl] = Field(
        None,
        validation_alias="FRONTEND_BASE_URL",
        description="Optional URL for redirecting users back to the front-end.",
    )
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    bungie: BungieSettings = Field(default_factory=BungieSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    aws: AWSSettings = Field(default_factory=AWSSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @model_validator(mode="after")
    def _check_storage_backend(self) -> "AppSettings":
        if self.storage.backend == "dynamodb" and not self.aws.dynamodb_table_name:
            raise ValueError("DYNAMODB_TABLE_NAME is required when STORAGE_BACKEND=dynamodb")
        return self


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "AWSSettings",
    "BungieSettings",
    "OAuthSettings",
    "SchedulerSettings",
    "SecuritySettings",
    "StorageSettings",
    "get_settings",
]
