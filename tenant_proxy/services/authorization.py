"""
Two-step OAuth authorization-code handshake for a tenant.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from tenant_proxy.models.tokens import CodeExchangeResult
from tenant_proxy.security.state import OAuthStateEncoder
from tenant_proxy.security.validators import (
    DEFAULT_TENANT_DOMAIN,
    validate_auth_code,
    validate_oauth_state,
    validate_tenant_host,
)
from tenant_proxy.services.token_lifecycle import TokenLifecycleManager

logger = logging.getLogger(__name__)


class AuthorizationProvider(Protocol):
    def build_authorization_url(self, state: str) -> str:
        ...

    async def exchange_code(self, code: str, tenant_host: str) -> CodeExchangeResult:
        ...


@dataclass(frozen=True)
class AuthorizationRequest:
    tenant_host: str
    state: str
    authorization_url: str


class AuthorizationFlowCoordinator:
    """Issue signed state, validate callbacks and hand refresh tokens to the lifecycle manager."""

    def __init__(
        self,
        *,
        provider: AuthorizationProvider,
        lifecycle: TokenLifecycleManager,
        state_encoder: OAuthStateEncoder,
        tenant_domain: str = DEFAULT_TENANT_DOMAIN,
    ) -> None:
        self._provider = provider
        self._lifecycle = lifecycle
        self._state_encoder = state_encoder
        self._tenant_domain = tenant_domain

    def start_authorization(self, tenant_host: str) -> AuthorizationRequest:
        """Validate the tenant and build the consent URL. Raises ``InvalidTenantError``."""
        tenant = validate_tenant_host(tenant_host, tenant_domain=self._tenant_domain)
        state = self._state_encoder.encode(tenant)
        url = self._provider.build_authorization_url(state)
        logger.info("Starting authorization for tenant %s", tenant)
        return AuthorizationRequest(tenant_host=tenant, state=state, authorization_url=url)

    async def complete_authorization(self, code: str, state: str) -> str:
        """
        Validate the callback, redeem the code and persist the refresh token.

        Returns the authorized tenant host. Raises ``InvalidStateError``,
        ``InvalidCodeError`` or ``UpstreamExchangeFailedError``; validation
        failures never reach the provider.
        """
        nonce, tenant = validate_oauth_state(state, tenant_domain=self._tenant_domain)
        self._state_encoder.verify(nonce, tenant)
        validate_auth_code(code)

        tokens = await self._provider.exchange_code(code, tenant)
        await self._lifecycle.store_refresh_credential(tenant, tokens.refresh_token)
        logger.info("Completed authorization for tenant %s", tenant)
        return tenant


__all__ = ["AuthorizationFlowCoordinator", "AuthorizationRequest"]
