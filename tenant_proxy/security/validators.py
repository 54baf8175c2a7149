"""
Input validation for everything a client can influence.

Each validator either returns the normalized value or raises the matching
``ValidationFailedError`` subclass, so callers never proceed on bad input.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping

from tenant_proxy.core.errors import (
    InvalidCodeError,
    InvalidMethodError,
    InvalidPathError,
    InvalidStateError,
    InvalidTenantError,
)

logger = logging.getLogger(__name__)

DEFAULT_TENANT_DOMAIN = "vincere.io"
ALLOWED_METHODS = ("GET", "POST")

NONCE_MIN_LENGTH = 16
NONCE_MAX_LENGTH = 128
CODE_MIN_LENGTH = 10
CODE_MAX_LENGTH = 1024
MAX_HOST_LENGTH = 253

_NONCE_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
_CODE_PATTERN = re.compile(r"^[A-Za-z0-9\-_=+/]+$")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
# Percent-encoded dot, slash or backslash, which an upstream may decode into traversal.
_ENCODED_SEPARATORS = re.compile(r"%2e|%2f|%5c", re.IGNORECASE)

SSRF_BLOCKLIST = frozenset(
    {
        "localhost",
        "127.0.0.1",
        "0.0.0.0",
        "::1",
        "169.254.169.254",
        "metadata.google.internal",
    }
)

PRIVATE_RANGE_PATTERNS = (
    re.compile(r"^10\."),
    re.compile(r"^172\.(1[6-9]|2[0-9]|3[0-1])\."),
    re.compile(r"^192\.168\."),
    re.compile(r"^169\.254\."),
    re.compile(r"^fc00:", re.IGNORECASE),
    re.compile(r"^fe80:", re.IGNORECASE),
)


def _tenant_pattern(tenant_domain: str) -> re.Pattern[str]:
    return re.compile(rf"^[a-z0-9-]+\.{re.escape(tenant_domain.lower())}$")


def validate_tenant_host(
    tenant_host: Any, *, tenant_domain: str = DEFAULT_TENANT_DOMAIN
) -> str:
    """Return the normalized tenant host or raise ``InvalidTenantError``."""
    if not tenant_host or not isinstance(tenant_host, str):
        raise InvalidTenantError("Tenant host is required")

    normalized = tenant_host.strip().lower()
    if not normalized or len(normalized) > MAX_HOST_LENGTH:
        raise InvalidTenantError("Invalid tenant host length")

    if not _tenant_pattern(tenant_domain).match(normalized):
        logger.warning("Invalid tenant host pattern: %r", normalized)
        raise InvalidTenantError("Invalid tenant host format")

    if normalized in SSRF_BLOCKLIST:
        logger.warning("SSRF attempt detected, blocklisted host: %r", normalized)
        raise InvalidTenantError("Invalid tenant host")

    for pattern in PRIVATE_RANGE_PATTERNS:
        if pattern.match(normalized):
            logger.warning("SSRF attempt detected, private address: %r", normalized)
            raise InvalidTenantError("Invalid tenant host")

    return normalized


def validate_path(path: Any) -> str:
    """Reject traversal (plain or percent-encoded), NUL bytes, absolute paths and full URLs."""
    if not path or not isinstance(path, str):
        raise InvalidPathError("Path is required")

    trimmed = path.strip()
    if ".." in trimmed or "//" in trimmed:
        logger.warning("Path traversal attempt detected: %r", trimmed)
        raise InvalidPathError("Invalid path")
    if "\0" in trimmed:
        logger.warning("Null byte in path detected")
        raise InvalidPathError("Invalid path")
    if _ENCODED_SEPARATORS.search(trimmed):
        logger.warning("Encoded path separator detected: %r", trimmed)
        raise InvalidPathError("Invalid path")
    if trimmed.startswith(("/", "http://", "https://")):
        logger.warning("Absolute path or URL attempt detected: %r", trimmed)
        raise InvalidPathError("Invalid path format")
    return trimmed


def validate_method(method: str) -> str:
    upper = (method or "").upper()
    if upper not in ALLOWED_METHODS:
        raise InvalidMethodError(f"Method {method} not allowed")
    return upper


def sanitize_query_params(params: Mapping[str, Any]) -> dict[str, str]:
    """Keep string values only, stripped of NUL and control characters."""
    return {
        key: _CONTROL_CHARS.sub("", value)
        for key, value in params.items()
        if isinstance(value, str)
    }


def validate_oauth_state(
    state: Any, *, tenant_domain: str = DEFAULT_TENANT_DOMAIN
) -> tuple[str, str]:
    """
    Check the ``nonce:tenantHost`` shape of an OAuth state value.

    Returns ``(nonce, tenant_host)``. Signature checks live in
    :class:`tenant_proxy.security.state.OAuthStateEncoder`.
    """
    if not state or not isinstance(state, str):
        raise InvalidStateError("State parameter is required")

    parts = state.split(":")
    if len(parts) != 2:
        raise InvalidStateError("Invalid state format")

    nonce, tenant_host = parts
    if (
        len(nonce) < NONCE_MIN_LENGTH
        or len(nonce) > NONCE_MAX_LENGTH
        or not _NONCE_PATTERN.match(nonce)
    ):
        logger.warning("Invalid OAuth state nonce")
        raise InvalidStateError("Invalid state")

    try:
        tenant = validate_tenant_host(tenant_host, tenant_domain=tenant_domain)
    except InvalidTenantError as exc:
        raise InvalidStateError(str(exc)) from exc
    return nonce, tenant


def validate_auth_code(code: Any) -> str:
    if not code or not isinstance(code, str):
        raise InvalidCodeError("Authorization code is required")
    if len(code) < CODE_MIN_LENGTH or len(code) > CODE_MAX_LENGTH:
        raise InvalidCodeError("Invalid code length")
    if not _CODE_PATTERN.match(code):
        logger.warning("Invalid authorization code format")
        raise InvalidCodeError("Invalid code format")
    return code


__all__ = [
    "ALLOWED_METHODS",
    "SSRF_BLOCKLIST",
    "sanitize_query_params",
    "validate_auth_code",
    "validate_method",
    "validate_oauth_state",
    "validate_path",
    "validate_tenant_host",
]
