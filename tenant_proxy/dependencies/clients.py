"""
Factory functions to provide shared clients and services as FastAPI dependencies.

Every factory is cached, so one token lifecycle manager (and therefore one
access token cache) exists per process.
"""

from functools import lru_cache

from tenant_proxy.clients import (
    IdentityProviderClient,
    SQLiteSecretStore,
    SecretStore,
    SecretsManagerStore,
)
from tenant_proxy.core.config import get_settings
from tenant_proxy.security.state import OAuthStateEncoder
from tenant_proxy.services import (
    AuthorizationFlowCoordinator,
    RequestForwarder,
    TokenCipherService,
    TokenLifecycleManager,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for the SQLite secret store."""
    settings = _settings()
    return TokenCipherService.from_settings(settings.security, settings.identity)


@lru_cache()
def get_secret_store() -> SecretStore:
    """Provide the configured secret store backend."""
    settings = _settings()
    if settings.secrets.backend == "aws":
        return SecretsManagerStore(settings.secrets)
    return SQLiteSecretStore(settings.secrets.db_path, get_token_cipher_service())


@lru_cache()
def get_oauth_state_encoder() -> OAuthStateEncoder:
    """Provide an OAuth state encoder keyed by the configured signing secret."""
    security = _settings().security
    return OAuthStateEncoder(
        secret_key=security.state_signing_secret or security.token_encryption_secret
    )


@lru_cache()
def get_identity_provider_client() -> IdentityProviderClient:
    """Create a singleton identity provider client."""
    settings = _settings()
    return IdentityProviderClient(settings.identity, settings.upstream)


@lru_cache()
def get_token_lifecycle_manager() -> TokenLifecycleManager:
    """Provide the process-wide token lifecycle manager."""
    settings = _settings()
    return TokenLifecycleManager(
        secret_store=get_secret_store(),
        token_client=get_identity_provider_client(),
        cache_seconds=settings.security.id_token_cache_seconds,
        namespace=settings.secrets.namespace,
    )


@lru_cache()
def get_authorization_coordinator() -> AuthorizationFlowCoordinator:
    settings = _settings()
    return AuthorizationFlowCoordinator(
        provider=get_identity_provider_client(),
        lifecycle=get_token_lifecycle_manager(),
        state_encoder=get_oauth_state_encoder(),
        tenant_domain=settings.tenants.tenant_domain,
    )


@lru_cache()
def get_request_forwarder() -> RequestForwarder:
    settings = _settings()
    return RequestForwarder(
        lifecycle=get_token_lifecycle_manager(),
        secret_store=get_secret_store(),
        tenant_settings=settings.tenants,
        upstream_settings=settings.upstream,
        namespace=settings.secrets.namespace,
    )


__all__ = [
    "get_authorization_coordinator",
    "get_identity_provider_client",
    "get_oauth_state_encoder",
    "get_request_forwarder",
    "get_secret_store",
    "get_token_cipher_service",
    "get_token_lifecycle_manager",
]
