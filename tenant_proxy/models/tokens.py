"""
Domain models for provider token payloads and cached access credentials.
"""

from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, Field


class CodeExchangeResult(BaseModel):
    """Tokens returned when an authorization code is redeemed."""

    refresh_token: str = Field(..., repr=False)
    access_token: str = Field(..., repr=False)


class TokenRefreshResult(BaseModel):
    """Tokens returned by a ``refresh_token`` grant."""

    access_token: str = Field(..., repr=False)
    expires_in: Optional[int] = Field(
        None, description="Provider-reported lifetime of the access token, in seconds."
    )
    refresh_token: Optional[str] = Field(
        None,
        repr=False,
        description="Present only when the provider rotated the refresh token.",
    )


@dataclass(frozen=True)
class CachedAccessToken:
    """An access credential held in memory until ``expires_at`` (clock seconds)."""

    token: str
    expires_at: float

    def __repr__(self) -> str:
        return f"CachedAccessToken(token='[REDACTED]', expires_at={self.expires_at!r})"

    def is_fresh(self, now: float) -> bool:
        return now < self.expires_at


__all__ = ["CachedAccessToken", "CodeExchangeResult", "TokenRefreshResult"]
