"""Issue and verify signed OAuth state values of the form ``nonce:tenantHost``."""

from __future__ import annotations

import base64
import binascii
import hmac
import secrets
from hashlib import sha256

from tenant_proxy.core.errors import InvalidStateError

_RANDOM_BYTES = 32
_TAG_BYTES = 16


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64url_decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + padding)


class OAuthStateEncoder:
    """Encode and verify OAuth state nonces to guard against forged callbacks.

    The nonce is ``base64url(random || hmac(random || tenant)[:16])`` with the
    padding stripped, so it stays inside the ``[A-Za-z0-9_-]`` alphabet.
    """

    def __init__(self, secret_key: str | None = None) -> None:
        key = secret_key.encode("utf-8") if secret_key else secrets.token_bytes(32)
        self._secret_key = key

    def _tag(self, random_part: bytes, tenant_host: str) -> bytes:
        message = random_part + tenant_host.encode("utf-8")
        return hmac.new(self._secret_key, message, sha256).digest()[:_TAG_BYTES]

    def encode(self, tenant_host: str) -> str:
        random_part = secrets.token_bytes(_RANDOM_BYTES)
        nonce = _b64url(random_part + self._tag(random_part, tenant_host))
        return f"{nonce}:{tenant_host}"

    def verify(self, nonce: str, tenant_host: str) -> None:
        """Raise ``InvalidStateError`` unless ``nonce`` was issued for ``tenant_host``."""
        try:
            decoded = _b64url_decode(nonce)
        except (binascii.Error, ValueError) as exc:
            raise InvalidStateError("Invalid state signature") from exc
        if len(decoded) != _RANDOM_BYTES + _TAG_BYTES:
            raise InvalidStateError("Invalid state signature")
        random_part, signature = decoded[:_RANDOM_BYTES], decoded[_RANDOM_BYTES:]
        if not hmac.compare_digest(signature, self._tag(random_part, tenant_host)):
            raise InvalidStateError("Invalid state signature")


__all__ = ["OAuthStateEncoder"]
