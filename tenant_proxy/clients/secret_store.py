"""
Secret store adapters for refresh tokens, tenant API keys and the proxy PSK.

Two interchangeable backends share the same ``get_secret``/``set_secret``
surface: AWS Secrets Manager for deployed environments and an encrypted SQLite
table for local development.
"""

from __future__ import annotations

import logging
import re
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal, Optional, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from tenant_proxy.core.config import SecretStoreSettings
from tenant_proxy.core.errors import SecretStoreError

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from tenant_proxy.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)

PSK_SECRET_NAME = "infra/proxy-psk"
DEFAULT_NAMESPACE = "vincere"

SecretType = Literal["refresh_token", "api_key"]

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9-]")


def build_secret_name(
    tenant_host: str, secret_type: SecretType, *, namespace: str = DEFAULT_NAMESPACE
) -> str:
    """Deterministic secret name, e.g. ``vincere/acme-vincere-io/refresh_token``."""
    clean_tenant = _UNSAFE_CHARS.sub("-", tenant_host)
    return f"{namespace}/{clean_tenant}/{secret_type}"


class SecretStore(Protocol):
    """Key-value persistence addressed by secret name."""

    def get_secret(self, name: str) -> Optional[str]:
        ...

    def set_secret(self, name: str, value: str) -> None:
        ...


class SecretsManagerStore:
    """Secret store backed by AWS Secrets Manager."""

    def __init__(self, settings: SecretStoreSettings, client: Any | None = None) -> None:
        self._settings = settings
        self._client = client or boto3.client(
            "secretsmanager", region_name=settings.region_name
        )

    def get_secret(self, name: str) -> Optional[str]:
        try:
            response = self._client.get_secret_value(SecretId=name)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == "ResourceNotFoundException":
                logger.debug("Secret %s not found", name)
                return None
            logger.error("Error retrieving secret %s: %s", name, exc.response.get("Error", {}).get("Code"))
            raise SecretStoreError(f"Failed to read secret {name}") from exc
        except BotoCoreError as exc:
            logger.error("Error retrieving secret %s: %s", name, type(exc).__name__)
            raise SecretStoreError(f"Failed to read secret {name}") from exc

        value = response.get("SecretString")
        if not value:
            logger.warning("Secret %s exists but has no value", name)
            return None
        return value

    def set_secret(self, name: str, value: str) -> None:
        try:
            try:
                self._client.put_secret_value(SecretId=name, SecretString=value)
            except ClientError as exc:
                if exc.response.get("Error", {}).get("Code") != "ResourceNotFoundException":
                    raise
                self._client.create_secret(Name=name, SecretString=value)
        except (BotoCoreError, ClientError) as exc:
            logger.error("Error storing secret %s: %s", name, type(exc).__name__)
            raise SecretStoreError(f"Failed to store secret {name}") from exc
        logger.info("Secret %s stored", name)


class SQLiteSecretStore:
    """Secret store keeping Fernet-encrypted values in a local SQLite table."""

    def __init__(self, db_path: str, cipher: TokenCipherService) -> None:
        self._db_path = Path(db_path)
        self._cipher = cipher
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS secrets (
                    name TEXT PRIMARY KEY,
                    value_encrypted TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

    def get_secret(self, name: str) -> Optional[str]:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT value_encrypted FROM secrets WHERE name = ?",
                    (name,),
                ).fetchone()
        except sqlite3.Error as exc:
            raise SecretStoreError(f"Failed to read secret {name}") from exc
        if not row:
            return None
        try:
            return self._cipher.decrypt(row["value_encrypted"])
        except ValueError as exc:
            raise SecretStoreError(f"Secret {name} could not be decrypted") from exc

    def set_secret(self, name: str, value: str) -> None:
        encrypted = self._cipher.encrypt(value)
        now_iso = datetime.now(timezone.utc).isoformat()
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO secrets (name, value_encrypted, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(name) DO UPDATE SET
                        value_encrypted = excluded.value_encrypted,
                        updated_at = excluded.updated_at
                    """,
                    (name, encrypted, now_iso),
                )
        except sqlite3.Error as exc:
            raise SecretStoreError(f"Failed to store secret {name}") from exc
        logger.info("Secret %s stored", name)


__all__ = [
    "PSK_SECRET_NAME",
    "SQLiteSecretStore",
    "SecretStore",
    "SecretsManagerStore",
    "build_secret_name",
]
