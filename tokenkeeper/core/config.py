"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the maintenance scripts
and embedded callers share one configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal, Optional

import os

from pydantic import AnyHttpUrl, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


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


class OAuthSettings(BaseSettings):
    """Client registration and flow parameters for the authorization server."""

    client_id: str = Field(..., validation_alias="OAUTH_CLIENT_ID")
    client_secret: str = Field(..., validation_alias="OAUTH_CLIENT_SECRET")
    redirect_uri: AnyHttpUrl = Field(..., validation_alias="OAUTH_REDIRECT_URI")
    auth_base_url: AnyHttpUrl = Field(
        ...,
        validation_alias="OAUTH_AUTH_BASE_URL",
        description="Base URL that the authorize and token paths are appended to.",
    )
    authorize_path: str = Field("/auth", validation_alias="OAUTH_AUTHORIZE_PATH")
    token_path: str = Field("/token", validation_alias="OAUTH_TOKEN_PATH")
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        (),
        validation_alias="OAUTH_SCOPES",
    )
    state_ttl_seconds: int = Field(600, validation_alias="OAUTH_STATE_TTL")
    http_timeout_seconds: float = Field(10.0, validation_alias="OAUTH_HTTP_TIMEOUT")

    @field_validator("scopes", mode="before")
    @classmethod
    def split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(value)
        return tuple(scope.strip() for scope in value.split(",") if scope.strip())

    def endpoint(self, path: str) -> str:
        return str(self.auth_base_url).rstrip("/") + "/" + path.lstrip("/")

    @property
    def authorize_url(self) -> str:
        return self.endpoint(self.authorize_path)

    @property
    def token_url(self) -> str:
        return self.endpoint(self.token_path)


class SecuritySettings(BaseSettings):
    """Token encryption and refresh policy."""

    token_encryption_key: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_KEY",
        description="Hex encoded 32-byte key used to encrypt stored tokens.",
    )
    enforce_encryption: bool = Field(False, validation_alias="TOKEN_ENFORCE_ENCRYPTION")
    refresh_buffer_seconds: int = Field(300, validation_alias="TOKEN_REFRESH_BUFFER")


class StorageSettings(BaseSettings):
    """Where credentials are persisted."""

    backend: Literal["memory", "sqlite", "dynamodb"] = Field(
        "sqlite", validation_alias="CREDENTIAL_STORE_BACKEND"
    )
    db_path: str = Field("data/credentials.db", validation_alias="CREDENTIAL_DB_PATH")
    table_name: str = Field("oauth_credentials", validation_alias="CREDENTIAL_TABLE_NAME")
    dynamodb_table_name: Optional[str] = Field(None, validation_alias="DYNAMODB_TABLE_NAME")
    region_name: str = Field("us-east-1", validation_alias="AWS_REGION")


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    frontend_base_url: Optional[HttpUrl] = Field(
        None,
        validation_alias="FRONTEND_BASE_URL",
        description="Optional URL for redirecting users back after authorization.",
    )
    failure_redirect_url: Optional[HttpUrl] = Field(
        None,
        validation_alias="FAILURE_REDIRECT_URL",
        description="Optional URL for redirecting browsers when authorization fails.",
    )
    state_reap_interval_seconds: float = Field(60.0, validation_alias="STATE_REAP_INTERVAL")
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "OAuthSettings",
    "SecuritySettings",
    "StorageSettings",
    "get_settings",
]
