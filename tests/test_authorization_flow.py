try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from tenant_proxy.clients.secret_store import build_secret_name
from tenant_proxy.core.errors import (
    InvalidCodeError,
    InvalidStateError,
    InvalidTenantError,
    UpstreamExchangeFailedError,
)
from tenant_proxy.models.tokens import CodeExchangeResult, TokenRefreshResult
from tenant_proxy.security.state import OAuthStateEncoder
from tenant_proxy.services.authorization import AuthorizationFlowCoordinator
from tenant_proxy.services.token_lifecycle import TokenLifecycleManager

VALID_CODE = "auth-code-0123456789"


class DummyProvider:
    def __init__(self) -> None:
        self.states: list[str] = []
        self.exchanges: list[tuple[str, str]] = []
        self.error: Exception | None = None

    def build_authorization_url(self, state: str) -> str:
        self.states.append(state)
        return f"https://id.example.io/oauth2/authorize?state={state}"

    async def exchange_code(self, code: str, tenant_host: str) -> CodeExchangeResult:
        self.exchanges.append((code, tenant_host))
        if self.error is not None:
            raise self.error
        return CodeExchangeResult(refresh_token="refresh-from-code", access_token="id-token")

    async def refresh(self, refresh_token: str) -> TokenRefreshResult:
        return TokenRefreshResult(access_token="access", expires_in=3600)


class DictSecretStore:
    def __init__(self) -> None:
        self.values: dict[str, str] = {}

    def get_secret(self, name: str) -> str | None:
        return self.values.get(name)

    def set_secret(self, name: str, value: str) -> None:
        self.values[name] = value


@pytest.fixture()
def flow():
    provider = DummyProvider()
    store = DictSecretStore()
    lifecycle = TokenLifecycleManager(secret_store=store, token_client=provider)
    coordinator = AuthorizationFlowCoordinator(
        provider=provider,
        lifecycle=lifecycle,
        state_encoder=OAuthStateEncoder(secret_key="state-key"),
        tenant_domain="example.io",
    )
    return coordinator, provider, store


def test_start_authorization_embeds_signed_state(flow) -> None:
    coordinator, provider, _ = flow

    request = coordinator.start_authorization("Tenant.Example.io")

    assert request.tenant_host == "tenant.example.io"
    assert request.state.endswith(":tenant.example.io")
    assert provider.states == [request.state]
    assert request.state in request.authorization_url


def test_start_authorization_rejects_foreign_host(flow) -> None:
    coordinator, provider, _ = flow

    with pytest.raises(InvalidTenantError):
        coordinator.start_authorization("evil.com")
    assert provider.states == []


@pytest.mark.anyio
async def test_complete_authorization_stores_refresh_token(flow) -> None:
    coordinator, provider, store = flow
    request = coordinator.start_authorization("tenant.example.io")

    tenant = await coordinator.complete_authorization(VALID_CODE, request.state)

    assert tenant == "tenant.example.io"
    assert provider.exchanges == [(VALID_CODE, "tenant.example.io")]
    name = build_secret_name("tenant.example.io", "refresh_token")
    assert store.values[name] == "refresh-from-code"


@pytest.mark.anyio
async def test_short_nonce_rejected_before_exchange(flow) -> None:
    coordinator, provider, store = flow

    with pytest.raises(InvalidStateError):
        await coordinator.complete_authorization(VALID_CODE, "shortnonce:tenant.example.io")

    assert provider.exchanges == []
    assert store.values == {}


@pytest.mark.anyio
async def test_unsigned_state_rejected(flow) -> None:
    coordinator, provider, _ = flow
    forged = "A" * 64 + ":tenant.example.io"

    with pytest.raises(InvalidStateError):
        await coordinator.complete_authorization(VALID_CODE, forged)
    assert provider.exchanges == []


@pytest.mark.anyio
async def test_state_replayed_for_other_tenant_rejected(flow) -> None:
    coordinator, provider, _ = flow
    nonce, _ = coordinator.start_authorization("tenant.example.io").state.split(":")

    with pytest.raises(InvalidStateError):
        await coordinator.complete_authorization(VALID_CODE, f"{nonce}:other.example.io")
    assert provider.exchanges == []


@pytest.mark.anyio
async def test_invalid_code_rejected_before_exchange(flow) -> None:
    coordinator, provider, _ = flow
    request = coordinator.start_authorization("tenant.example.io")

    with pytest.raises(InvalidCodeError):
        await coordinator.complete_authorization("bad code!", request.state)
    assert provider.exchanges == []


@pytest.mark.anyio
async def test_exchange_failure_leaves_store_untouched(flow) -> None:
    coordinator, provider, store = flow
    provider.error = UpstreamExchangeFailedError("rejected", status_code=400)
    request = coordinator.start_authorization("tenant.example.io")

    with pytest.raises(UpstreamExchangeFailedError):
        await coordinator.complete_authorization(VALID_CODE, request.state)
    assert store.values == {}
