"""Service layer exports."""

from .authorization import AuthorizationFlowCoordinator, AuthorizationRequest
from .forwarder import ProxyResponse, RequestForwarder, extract_row_count
from .token_cipher import TokenCipherService
from .token_lifecycle import KeyedLocks, TenantTokenState, TokenLifecycleManager

__all__ = [
    "AuthorizationFlowCoordinator",
    "AuthorizationRequest",
    "KeyedLocks",
    "ProxyResponse",
    "RequestForwarder",
    "TenantTokenState",
    "TokenCipherService",
    "TokenLifecycleManager",
    "extract_row_count",
]
