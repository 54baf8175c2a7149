"""Expose constructed client wrappers."""

from .identity_provider import IdentityProviderClient
from .secret_store import (
    PSK_SECRET_NAME,
    SQLiteSecretStore,
    SecretStore,
    SecretsManagerStore,
    build_secret_name,
)

__all__ = [
    "IdentityProviderClient",
    "PSK_SECRET_NAME",
    "SQLiteSecretStore",
    "SecretStore",
    "SecretsManagerStore",
    "build_secret_name",
]
