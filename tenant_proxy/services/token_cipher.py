"""Symmetric encryption for secrets persisted by the local SQLite secret store."""

from __future__ import annotations

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken

from tenant_proxy.core.config import IdentityProviderSettings, SecuritySettings


class TokenCipherService:
    """Encrypt and decrypt secret values using a derived Fernet key."""

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))

    @classmethod
    def from_settings(
        cls, security: SecuritySettings, identity: IdentityProviderSettings
    ) -> "TokenCipherService":
        """Prefer the dedicated encryption secret, then the provider client secret."""
        secret = security.token_encryption_secret or identity.client_secret
        if not secret:
            raise ValueError(
                "TOKEN_ENCRYPTION_SECRET is required for the sqlite secret store."
            )
        return cls(secret=secret)

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        """Return the plaintext, or raise ``ValueError`` for foreign or corrupt ciphertext."""
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("utf-8"))
        except InvalidToken as exc:
            raise ValueError("Failed to decrypt secret; invalid ciphertext provided.") from exc
        return plaintext.decode("utf-8")


__all__ = ["TokenCipherService"]
