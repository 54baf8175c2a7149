"""
OAuth2 identity provider utilities.

These helpers build the consent URL and talk to the provider's token endpoint
for both the authorization-code and refresh-token grants.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx
from fastapi import status

from tenant_proxy.core.config import IdentityProviderSettings, UpstreamSettings
from tenant_proxy.core.errors import (
    InvalidUpstreamResponseError,
    TransportFailureError,
    UpstreamExchangeFailedError,
)
from tenant_proxy.models.tokens import CodeExchangeResult, TokenRefreshResult
from tenant_proxy.utils.http import RetryConfig, request_with_retry

logger = logging.getLogger(__name__)


class IdentityProviderClient:
    """Build authorization URLs and redeem codes and refresh tokens."""

    AUTHORIZE_PATH = "/oauth2/authorize"
    TOKEN_PATH = "/oauth2/token"

    def __init__(
        self,
        settings: IdentityProviderSettings,
        upstream_settings: UpstreamSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._timeout = upstream_settings.timeout_seconds
        self._retry = RetryConfig.from_settings(upstream_settings)
        self._transport = transport

    @property
    def token_url(self) -> str:
        return f"{self._settings.issuer}{self.TOKEN_PATH}"

    def build_authorization_url(self, state: str) -> str:
        """Construct the provider consent URL."""
        params = {
            "response_type": "code",
            "client_id": self._settings.client_id,
            "redirect_uri": str(self._settings.redirect_uri),
            "state": state,
        }
        return f"{self._settings.issuer}{self.AUTHORIZE_PATH}?{urlencode(params)}"

    async def exchange_code(self, code: str, tenant_host: str) -> CodeExchangeResult:
        """Exchange an authorization code for a refresh token and an initial access token."""
        payload = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": self._settings.client_id,
            "redirect_uri": str(self._settings.redirect_uri),
        }
        logger.info("Exchanging authorization code for tenant %s", tenant_host)
        token_payload = await self._post_token_request(payload, grant="authorization_code")

        refresh_token = token_payload.get("refresh_token")
        access_token = token_payload.get(self._settings.token_field)
        if not refresh_token or not access_token:
            logger.error(
                "Token response for tenant %s missing fields (has_refresh=%s, has_%s=%s)",
                tenant_host,
                bool(refresh_token),
                self._settings.token_field,
                bool(access_token),
            )
            raise InvalidUpstreamResponseError("Incomplete token payload returned by provider.")

        logger.info("Exchanged authorization code for tenant %s", tenant_host)
        return CodeExchangeResult(refresh_token=refresh_token, access_token=access_token)

    async def refresh(self, refresh_token: str) -> TokenRefreshResult:
        """Redeem a refresh token for a new access token (and possibly a rotated refresh token)."""
        payload = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self._settings.client_id,
        }
        logger.debug("Refreshing tokens")
        token_payload = await self._post_token_request(payload, grant="refresh_token")

        access_token = token_payload.get(self._settings.token_field)
        if not access_token:
            logger.error("Refresh response missing %s", self._settings.token_field)
            raise InvalidUpstreamResponseError("Incomplete refresh payload returned by provider.")

        expires_in = token_payload.get("expires_in")
        try:
            expires_in = int(expires_in) if expires_in is not None else None
        except (TypeError, ValueError):
            expires_in = None

        return TokenRefreshResult(
            access_token=access_token,
            expires_in=expires_in,
            refresh_token=token_payload.get("refresh_token") or None,
        )

    async def _post_token_request(self, payload: Dict[str, str], *, grant: str) -> Dict[str, Any]:
        if self._settings.client_secret:
            payload = {**payload, "client_secret": self._settings.client_secret}

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await request_with_retry(
                    client.post,
                    self.token_url,
                    data=payload,
                    headers={"Accept": "application/json"},
                    retry_config=self._retry,
                )
        except TransportFailureError as exc:
            logger.error("Token endpoint unreachable during %s grant", grant)
            raise UpstreamExchangeFailedError(
                "Identity provider unreachable."
            ) from exc

        if response.status_code != status.HTTP_200_OK:
            logger.error(
                "Token %s grant failed with status %s (error=%s)",
                grant,
                response.status_code,
                _provider_error_code(response),
            )
            raise UpstreamExchangeFailedError(
                f"Token {grant} grant failed with status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            token_payload = response.json()
        except ValueError as exc:
            raise InvalidUpstreamResponseError("Token endpoint returned non-JSON body.") from exc
        if not isinstance(token_payload, dict):
            raise InvalidUpstreamResponseError("Token endpoint returned unexpected body.")
        return token_payload


def _provider_error_code(response: httpx.Response) -> Optional[str]:
    """Extract the OAuth ``error`` code without echoing the rest of the body."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        error = body.get("error")
        return str(error) if error is not None else None
    return None


__all__ = ["IdentityProviderClient"]
