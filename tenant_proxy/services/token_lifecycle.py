"""
Per-tenant access token lifecycle.

Owns the in-memory access token cache and every read or write of a tenant's
refresh token. Refreshes are single-flight per tenant: the secret read, the
provider call and any rotated-token write happen while holding that tenant's
lock, so concurrent callers queue behind one refresh and then hit the cache.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from enum import Enum
from typing import AsyncIterator, Callable, Optional, Protocol

from tenant_proxy.clients.secret_store import (
    DEFAULT_NAMESPACE,
    SecretStore,
    build_secret_name,
)
from tenant_proxy.core.errors import NotAuthorizedError, SecretStoreError
from tenant_proxy.models.tokens import CachedAccessToken, TokenRefreshResult

logger = logging.getLogger(__name__)


class TenantTokenState(str, Enum):
    UNAUTHORIZED = "unauthorized"
    CACHED = "cached"
    REFRESHING = "refreshing"
    STALE = "stale"


class TokenRefresher(Protocol):
    async def refresh(self, refresh_token: str) -> TokenRefreshResult:
        ...


class KeyedLocks:
    """asyncio locks keyed by string, dropped once nobody holds or awaits them."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def keys(self) -> list[str]:
        return list(self._locks)

    def locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]


class TokenLifecycleManager:
    """Hands out access tokens per tenant, refreshing and caching them as needed."""

    # Cached tokens expire at least this long before the provider says they do.
    EXPIRY_SKEW_SECONDS = 5.0

    def __init__(
        self,
        *,
        secret_store: SecretStore,
        token_client: TokenRefresher,
        cache_seconds: float = 50,
        namespace: str = DEFAULT_NAMESPACE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = secret_store
        self._client = token_client
        self._cache_seconds = cache_seconds
        self._namespace = namespace
        self._clock = clock
        self._cache: dict[str, CachedAccessToken] = {}
        self._locks = KeyedLocks()
        # Rotated refresh tokens the store failed to persist; used and re-written next time.
        self._pending_refresh: dict[str, str] = {}

    def _secret_name(self, tenant_host: str) -> str:
        return build_secret_name(tenant_host, "refresh_token", namespace=self._namespace)

    async def get_access_token(self, tenant_host: str) -> str:
        """
        Return a fresh access token for an already validated tenant host.

        Raises ``NotAuthorizedError`` when no refresh token is on record, and lets
        ``UpstreamExchangeFailedError`` / ``InvalidUpstreamResponseError`` from the
        token client propagate unchanged.
        """
        async with self._locks.hold(tenant_host):
            cached = self._cache.get(tenant_host)
            if cached is not None:
                if cached.is_fresh(self._clock()):
                    logger.debug("Using cached access token for tenant %s", tenant_host)
                    return cached.token
                del self._cache[tenant_host]

            logger.debug("Cache miss for tenant %s, refreshing access token", tenant_host)
            return await self._refresh_locked(tenant_host)

    async def _refresh_locked(self, tenant_host: str) -> str:
        secret_name = self._secret_name(tenant_host)
        refresh_token = self._pending_refresh.get(tenant_host)
        if refresh_token is None:
            refresh_token = await asyncio.to_thread(self._store.get_secret, secret_name)
        if not refresh_token:
            logger.error("No refresh token found for tenant %s", tenant_host)
            raise NotAuthorizedError(tenant_host)

        started_at = self._clock()
        try:
            tokens = await self._client.refresh(refresh_token)
        except Exception:
            logger.error("Failed to refresh access token for tenant %s", tenant_host)
            raise

        window = self._cache_window(tokens.expires_in)
        if window > 0:
            self._cache[tenant_host] = CachedAccessToken(
                token=tokens.access_token, expires_at=started_at + window
            )
            logger.info("Cached new access token for tenant %s (%.0fs)", tenant_host, window)
        else:
            logger.warning(
                "Provider lifetime too short to cache access token for tenant %s",
                tenant_host,
            )

        rotated = tokens.refresh_token if tokens.refresh_token != refresh_token else None
        to_persist = rotated or self._pending_refresh.get(tenant_host)
        if to_persist:
            await self._persist_refresh_token(tenant_host, secret_name, to_persist)

        return tokens.access_token

    def _cache_window(self, expires_in: Optional[int]) -> float:
        window = float(self._cache_seconds)
        if expires_in is not None:
            window = min(window, expires_in - self.EXPIRY_SKEW_SECONDS)
        return window

    async def _persist_refresh_token(
        self, tenant_host: str, secret_name: str, refresh_token: str
    ) -> None:
        logger.info("Updating rotated refresh token for tenant %s", tenant_host)
        try:
            await asyncio.to_thread(self._store.set_secret, secret_name, refresh_token)
        except SecretStoreError:
            self._pending_refresh[tenant_host] = refresh_token
            logger.error(
                "Could not persist rotated refresh token for tenant %s; "
                "keeping it in memory and retrying on the next refresh",
                tenant_host,
            )
            return
        self._pending_refresh.pop(tenant_host, None)

    async def store_refresh_credential(self, tenant_host: str, refresh_token: str) -> None:
        """Overwrite the tenant's refresh token and drop any cached access token."""
        async with self._locks.hold(tenant_host):
            await asyncio.to_thread(
                self._store.set_secret, self._secret_name(tenant_host), refresh_token
            )
            self._pending_refresh.pop(tenant_host, None)
            self._cache.pop(tenant_host, None)
        logger.info("Stored refresh token for tenant %s", tenant_host)

    async def clear_cache(self, tenant_host: Optional[str] = None) -> None:
        """
        Forget cached access tokens (one tenant, or all). The secret store is untouched.

        Each entry is dropped under its tenant's lock, so a refresh already in
        flight finishes first and its token is cleared with the rest.
        """
        if tenant_host:
            tenants = [tenant_host]
        else:
            tenants = list(dict.fromkeys([*self._cache, *self._locks.keys()]))
        for tenant in tenants:
            async with self._locks.hold(tenant):
                self._cache.pop(tenant, None)
        if tenant_host:
            logger.debug("Cleared access token cache for tenant %s", tenant_host)
        else:
            logger.debug("Cleared all cached access tokens")

    async def state_of(self, tenant_host: str) -> TenantTokenState:
        """Report where the tenant sits in the token lifecycle, reading the store if needed."""
        if self._locks.locked(tenant_host):
            return TenantTokenState.REFRESHING
        cached = self._cache.get(tenant_host)
        if cached is not None and cached.is_fresh(self._clock()):
            return TenantTokenState.CACHED
        if tenant_host in self._pending_refresh:
            return TenantTokenState.STALE
        refresh_token = await asyncio.to_thread(
            self._store.get_secret, self._secret_name(tenant_host)
        )
        if not refresh_token:
            return TenantTokenState.UNAUTHORIZED
        return TenantTokenState.STALE


__all__ = ["KeyedLocks", "TenantTokenState", "TokenLifecycleManager"]
