"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_authorization_coordinator,
    get_identity_provider_client,
    get_oauth_state_encoder,
    get_request_forwarder,
    get_secret_store,
    get_token_cipher_service,
    get_token_lifecycle_manager,
)
from .config import (
    get_app_settings,
    get_security_settings,
    get_tenant_settings,
)

__all__ = [
    "get_app_settings",
    "get_authorization_coordinator",
    "get_identity_provider_client",
    "get_oauth_state_encoder",
    "get_request_forwarder",
    "get_secret_store",
    "get_security_settings",
    "get_tenant_settings",
    "get_token_cipher_service",
    "get_token_lifecycle_manager",
]
