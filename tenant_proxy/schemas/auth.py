"""Schemas related to OAuth flows."""

from __future__ import annotations

from pydantic import BaseModel, Field


class AuthorizationStartResponse(BaseModel):
    """Returned by ``/auth/start`` when the client asked for JSON instead of a redirect."""

    tenant_host: str = Field(..., description="Normalized tenant host being authorized.")
    authorization_url: str = Field(..., description="Provider consent URL to visit.")


__all__ = ["AuthorizationStartResponse"]
