"""
Error taxonomy shared by the token lifecycle, authorization and forwarding layers.

Messages never carry credential values; callers may surface ``str(exc)`` to
clients verbatim.
"""

from __future__ import annotations

from typing import Optional


class ProxyError(Exception):
    """Base class for every recoverable, per-request failure."""


class ValidationFailedError(ProxyError):
    """Client input was rejected before any network call was made."""


class InvalidTenantError(ValidationFailedError):
    """Tenant host is malformed, outside the provider domain, or blocklisted."""


class InvalidPathError(ValidationFailedError):
    """Upstream path could escape the tenant API prefix."""


class InvalidMethodError(ValidationFailedError):
    """Only GET and POST are forwarded."""


class InvalidStateError(ValidationFailedError):
    """OAuth state is malformed, too weak, or not signed by this service."""


class InvalidCodeError(ValidationFailedError):
    """Authorization code fails the length/charset check."""


class NotAuthorizedError(ProxyError):
    """No refresh credential is on record; the tenant must run the OAuth flow."""

    def __init__(self, tenant_host: str) -> None:
        super().__init__(f"Tenant {tenant_host} is not authorized; no refresh token found.")
        self.tenant_host = tenant_host


class UpstreamExchangeFailedError(ProxyError):
    """The identity provider rejected or failed a token request."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class InvalidUpstreamResponseError(UpstreamExchangeFailedError):
    """The identity provider answered 200 without the required fields."""


class TransportFailureError(ProxyError):
    """Network error or timeout that outlived the retry budget."""


class SecretStoreError(ProxyError):
    """The secret store backend failed to read or write a value."""


__all__ = [
    "InvalidCodeError",
    "InvalidMethodError",
    "InvalidPathError",
    "InvalidStateError",
    "InvalidTenantError",
    "InvalidUpstreamResponseError",
    "NotAuthorizedError",
    "ProxyError",
    "SecretStoreError",
    "TransportFailureError",
    "UpstreamExchangeFailedError",
    "ValidationFailedError",
]
