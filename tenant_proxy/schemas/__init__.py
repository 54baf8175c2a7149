"""Public schema exports."""

from .auth import AuthorizationStartResponse
from .proxy import CacheClearResult, HealthStatus, ProxyErrorBody, TenantTokenStatus

__all__ = [
    "AuthorizationStartResponse",
    "CacheClearResult",
    "HealthStatus",
    "ProxyErrorBody",
    "TenantTokenStatus",
]
