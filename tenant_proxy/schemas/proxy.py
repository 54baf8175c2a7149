"""Schemas for the proxy and operational endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class HealthStatus(BaseModel):
    status: str = "ok"
    time_utc: datetime
    app_version: str


class ProxyErrorBody(BaseModel):
    """Error envelope for proxy failures."""

    error: str
    hint: Optional[str] = Field(
        None, description="Remediation hint, e.g. where to start the OAuth flow."
    )


class CacheClearResult(BaseModel):
    cleared: str = Field(..., description="Tenant host cleared, or 'all'.")


class TenantTokenStatus(BaseModel):
    tenant_host: str
    state: str


__all__ = ["CacheClearResult", "HealthStatus", "ProxyErrorBody", "TenantTokenStatus"]
