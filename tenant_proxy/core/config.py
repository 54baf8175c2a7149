"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the dependency factories
and the operational scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal, Optional

import os

from pydantic import AnyHttpUrl, Field, field_validator
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


class _EnvSettings(BaseSettings):
    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")


class IdentityProviderSettings(_EnvSettings):
    """Configuration required for the OAuth2 identity provider."""

    base_url: AnyHttpUrl = Field("https://id.vincere.io", alias="IDP_BASE_URL")
    client_id: str = Field(..., alias="IDP_CLIENT_ID")
    client_secret: Optional[str] = Field(
        None,
        alias="IDP_CLIENT_SECRET",
        description="Only sent to the token endpoint when the client is confidential.",
    )
    redirect_uri: AnyHttpUrl = Field(..., alias="IDP_REDIRECT_URI")
    token_field: str = Field(
        "id_token",
        alias="TOKEN_RESPONSE_FIELD",
        description="Token response field carrying the credential sent upstream.",
    )

    @property
    def issuer(self) -> str:
        return str(self.base_url).rstrip("/")


class TenantSettings(_EnvSettings):
    """Shape of tenant hosts and of the requests forwarded to them."""

    tenant_domain: str = Field("vincere.io", alias="TENANT_DOMAIN")
    api_prefix: str = Field("api/v2", alias="UPSTREAM_API_PREFIX")
    access_token_header: str = Field("id-token", alias="ACCESS_TOKEN_HEADER")
    api_key_header: str = Field("x-api-key", alias="API_KEY_HEADER")

    @field_validator("tenant_domain", "api_prefix")
    @classmethod
    def _strip_separators(cls, value: str) -> str:
        return value.strip().strip("./").lower()


class SecretStoreSettings(_EnvSettings):
    """Where refresh tokens, API keys and the proxy PSK are kept."""

    backend: Literal["sqlite", "aws"] = Field("sqlite", alias="SECRET_STORE_BACKEND")
    namespace: str = Field("vincere", alias="SECRET_NAMESPACE")
    db_path: str = Field("data/secrets.db", alias="SECRET_STORE_DB_PATH")
    region_name: str = Field("us-east-1", alias="AWS_REGION")


class SecuritySettings(_EnvSettings):
    """Security-related configuration."""

    token_encryption_secret: Optional[str] = Field(
        None,
        alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )
    state_signing_secret: Optional[str] = Field(
        None,
        alias="STATE_SIGNING_SECRET",
        description="HMAC key for OAuth state nonces. Falls back to the encryption secret.",
    )
    id_token_cache_seconds: int = Field(50, alias="ID_TOKEN_CACHE_SECONDS", gt=0)
    require_psk: bool = Field(False, alias="REQUIRE_PSK")
    allowed_ips: Annotated[tuple[str, ...], NoDecode] = Field((), alias="ALLOWED_IPS")

    @field_validator("allowed_ips", mode="before")
    @classmethod
    def _split_ips(cls, value: str | tuple[str, ...] | list[str]) -> tuple[str, ...]:
        """Support providing the allow-list as a comma-separated string."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(value)
        return tuple(ip.strip() for ip in value.split(",") if ip.strip())


class UpstreamSettings(_EnvSettings):
    """Timeouts and retry policy for calls to the provider and tenant hosts."""

    timeout_seconds: float = Field(100.0, alias="UPSTREAM_TIMEOUT_SECONDS", gt=0)
    max_retries: int = Field(3, alias="UPSTREAM_MAX_RETRIES", ge=0)
    backoff_seconds: float = Field(1.0, alias="UPSTREAM_BACKOFF_SECONDS", ge=0)
    jitter_seconds: float = Field(1.0, alias="UPSTREAM_JITTER_SECONDS", ge=0)


class AppSettings(_EnvSettings):
    """Root settings object for the FastAPI application."""

    environment: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="APP_LOG_LEVEL")
    app_version: str = Field("0.1.0", alias="APP_VERSION")
    identity: IdentityProviderSettings = Field(default_factory=IdentityProviderSettings)
    tenants: TenantSettings = Field(default_factory=TenantSettings)
    secrets: SecretStoreSettings = Field(default_factory=SecretStoreSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    upstream: UpstreamSettings = Field(default_factory=UpstreamSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "IdentityProviderSettings",
    "SecretStoreSettings",
    "SecuritySettings",
    "TenantSettings",
    "UpstreamSettings",
    "get_settings",
]
