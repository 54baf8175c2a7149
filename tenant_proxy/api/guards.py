"""
Perimeter guard for the proxy and operational routes.

Applies the optional client IP allow-list and, when ``REQUIRE_PSK`` is set,
checks the ``X-Proxy-Token`` header against the pre-shared key held in the
secret store.
"""

from __future__ import annotations

import asyncio
import hmac
import logging
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import Depends, Header, HTTPException, Request

from tenant_proxy.clients.secret_store import PSK_SECRET_NAME
from tenant_proxy.core.config import SecuritySettings
from tenant_proxy.core.errors import SecretStoreError
from tenant_proxy.dependencies import get_secret_store, get_security_settings

logger = logging.getLogger(__name__)


async def require_proxy_access(
    request: Request,
    security: Annotated[SecuritySettings, Depends(get_security_settings)],
    secret_store: Annotated[Any, Depends(get_secret_store)],
    proxy_token: Annotated[str | None, Header(alias="X-Proxy-Token")] = None,
) -> None:
    client_ip = request.client.host if request.client else ""
    if security.allowed_ips and client_ip not in security.allowed_ips:
        logger.warning("Client IP %s not in allow-list", client_ip)
        raise HTTPException(status_code=HTTPStatus.FORBIDDEN, detail="Forbidden")

    if not security.require_psk:
        return

    try:
        expected = await asyncio.to_thread(secret_store.get_secret, PSK_SECRET_NAME)
    except SecretStoreError as exc:
        logger.error("PSK lookup failed")
        raise HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR, detail="PSK check failed"
        ) from exc

    if not expected:
        logger.error("PSK required but not configured in the secret store")
        raise HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR, detail="PSK check failed"
        )

    if not proxy_token or not hmac.compare_digest(
        proxy_token.encode("utf-8"), expected.encode("utf-8")
    ):
        logger.warning("Invalid PSK token from %s", client_ip)
        raise HTTPException(status_code=HTTPStatus.UNAUTHORIZED, detail="Unauthorized")


ProxyAccessDependency = Depends(require_proxy_access)

__all__ = ["ProxyAccessDependency", "require_proxy_access"]
