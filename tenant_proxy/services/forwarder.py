"""
Forward client REST calls to a tenant's upstream API with credentials injected.

The target URL is always assembled server-side as
``https://{tenant}/{api_prefix}/{path}``; clients only ever contribute a
validated relative path and query values.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import httpx

from tenant_proxy.clients.secret_store import (
    DEFAULT_NAMESPACE,
    SecretStore,
    build_secret_name,
)
from tenant_proxy.core.config import TenantSettings, UpstreamSettings
from tenant_proxy.core.errors import TransportFailureError
from tenant_proxy.core.logging import redact_headers
from tenant_proxy.security.validators import (
    sanitize_query_params,
    validate_method,
    validate_path,
    validate_tenant_host,
)
from tenant_proxy.services.token_lifecycle import TokenLifecycleManager
from tenant_proxy.utils.http import RetryConfig, request_with_retry

logger = logging.getLogger(__name__)


@dataclass
class ProxyResponse:
    """Upstream answer relayed to the client, whatever its status code."""

    tenant_host: str
    status_code: int
    content: bytes
    target_url: str
    duration_ms: int
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def rejected(self) -> bool:
        """True when the upstream answered with a non-2xx status."""
        return not 200 <= self.status_code < 300

    @property
    def media_type(self) -> str:
        return self.headers.get("content-type", "application/json")

    def json(self) -> Any:
        """Decoded JSON body, or ``None`` when the body is empty or not JSON."""
        if not self.content:
            return None
        try:
            return json.loads(self.content)
        except ValueError:
            return None


def extract_row_count(data: Any) -> Optional[int]:
    """Row count of a search-style response: ``{"results": [...]}`` or a bare list."""
    if isinstance(data, dict) and isinstance(data.get("results"), list):
        return len(data["results"])
    if isinstance(data, list):
        return len(data)
    return None


class RequestForwarder:
    """Validate, authenticate and relay a single request to a tenant host."""

    def __init__(
        self,
        *,
        lifecycle: TokenLifecycleManager,
        secret_store: SecretStore,
        tenant_settings: TenantSettings,
        upstream_settings: UpstreamSettings,
        namespace: str = DEFAULT_NAMESPACE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._lifecycle = lifecycle
        self._store = secret_store
        self._tenants = tenant_settings
        self._namespace = namespace
        self._timeout = upstream_settings.timeout_seconds
        self._retry = RetryConfig.from_settings(upstream_settings)
        self._transport = transport

    def build_target_url(self, tenant_host: str, path: str) -> str:
        prefix = self._tenants.api_prefix
        clean_path = path.lstrip("/")
        if not clean_path.startswith(f"{prefix}/"):
            clean_path = f"{prefix}/{clean_path}"
        return f"https://{tenant_host}/{clean_path}"

    async def forward(
        self,
        tenant_host: str,
        path: str,
        method: str,
        query: Optional[Mapping[str, Any]] = None,
        body: Optional[bytes] = None,
    ) -> ProxyResponse:
        """
        Relay one call upstream.

        Validation errors are raised before the secret store or network is
        touched. ``NotAuthorizedError`` propagates from the lifecycle manager.
        Upstream 4xx/5xx come back as a ``ProxyResponse``; only transport
        failures raise (``TransportFailureError``).
        """
        tenant = validate_tenant_host(tenant_host, tenant_domain=self._tenants.tenant_domain)
        clean_path = validate_path(path)
        verb = validate_method(method)
        params = sanitize_query_params(query or {})

        started = time.perf_counter()
        logger.info("Calling upstream API for tenant %s: %s %s", tenant, verb, clean_path)

        access_token = await self._lifecycle.get_access_token(tenant)
        api_key = await asyncio.to_thread(
            self._store.get_secret,
            build_secret_name(tenant, "api_key", namespace=self._namespace),
        )

        target_url = self.build_target_url(tenant, clean_path)
        headers = {
            self._tenants.access_token_header: access_token,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if api_key:
            headers[self._tenants.api_key_header] = api_key
            logger.debug("Including %s header for tenant %s", self._tenants.api_key_header, tenant)

        safe_headers = redact_headers(
            headers,
            extra=(self._tenants.access_token_header, self._tenants.api_key_header),
        )
        logger.debug("Sending %s %s headers=%s", verb, target_url, safe_headers)
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await request_with_retry(
                    client.request,
                    verb,
                    target_url,
                    params=params,
                    headers=headers,
                    content=body if verb == "POST" else None,
                    retry_config=self._retry,
                )
        except TransportFailureError:
            logger.error(
                "Upstream call for tenant %s failed after %dms",
                tenant,
                _elapsed_ms(started),
            )
            raise

        duration_ms = _elapsed_ms(started)
        logger.info(
            "Upstream response for tenant %s: %s %s -> %s in %dms",
            tenant,
            verb,
            clean_path,
            response.status_code,
            duration_ms,
        )
        return ProxyResponse(
            tenant_host=tenant,
            status_code=response.status_code,
            content=response.content,
            target_url=target_url,
            duration_ms=duration_ms,
            headers={key.lower(): value for key, value in response.headers.items()},
        )


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


__all__ = ["ProxyResponse", "RequestForwarder", "extract_row_count"]
