try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import json
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from tenant_proxy.clients.identity_provider import IdentityProviderClient
from tenant_proxy.core.config import IdentityProviderSettings, UpstreamSettings
from tenant_proxy.core.errors import (
    InvalidUpstreamResponseError,
    UpstreamExchangeFailedError,
)


def _settings(**overrides) -> IdentityProviderSettings:
    values = {
        "base_url": "https://id.example.io",
        "client_id": "client-123",
        "redirect_uri": "https://proxy.example.com/auth/callback",
    }
    values.update(overrides)
    return IdentityProviderSettings(**values)


def _upstream() -> UpstreamSettings:
    return UpstreamSettings(max_retries=2, backoff_seconds=0, jitter_seconds=0)


def _client(handler, **overrides) -> IdentityProviderClient:
    return IdentityProviderClient(
        _settings(**overrides), _upstream(), transport=httpx.MockTransport(handler)
    )


def _form(request: httpx.Request) -> dict[str, str]:
    return {key: values[0] for key, values in parse_qs(request.content.decode()).items()}


def test_authorization_url_contains_client_parameters() -> None:
    client = _client(lambda request: httpx.Response(500))

    url = client.build_authorization_url("nonce:acme.example.io")

    parsed = urlparse(url)
    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == "https://id.example.io/oauth2/authorize"
    params = parse_qs(parsed.query)
    assert params["response_type"] == ["code"]
    assert params["client_id"] == ["client-123"]
    assert params["redirect_uri"] == ["https://proxy.example.com/auth/callback"]
    assert params["state"] == ["nonce:acme.example.io"]


@pytest.mark.anyio
async def test_exchange_code_posts_authorization_code_grant() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200, json={"refresh_token": "r-1", "id_token": "i-1", "access_token": "a-1"}
        )

    result = await _client(handler).exchange_code("code-0123456789", "acme.example.io")

    assert result.refresh_token == "r-1"
    assert result.access_token == "i-1"
    assert str(seen[0].url) == "https://id.example.io/oauth2/token"
    form = _form(seen[0])
    assert form["grant_type"] == "authorization_code"
    assert form["code"] == "code-0123456789"
    assert "client_secret" not in form


@pytest.mark.anyio
async def test_client_secret_sent_when_configured() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id_token": "i-2", "expires_in": "3600"})

    result = await _client(handler, client_secret="s3cret").refresh("r-1")

    form = _form(seen[0])
    assert form["grant_type"] == "refresh_token"
    assert form["refresh_token"] == "r-1"
    assert form["client_secret"] == "s3cret"
    assert result.access_token == "i-2"
    assert result.expires_in == 3600
    assert result.refresh_token is None


@pytest.mark.anyio
async def test_refresh_reports_rotated_token() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"id_token": "i-3", "refresh_token": "r-2"})

    result = await _client(handler).refresh("r-1")

    assert result.refresh_token == "r-2"
    assert result.expires_in is None


@pytest.mark.anyio
async def test_configured_token_field_is_used() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"id_token": "i", "access_token": "a"})

    result = await _client(handler, token_field="access_token").refresh("r-1")

    assert result.access_token == "a"


@pytest.mark.anyio
async def test_missing_fields_raise_invalid_response() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"id_token": "i-only"})

    with pytest.raises(InvalidUpstreamResponseError):
        await _client(handler).exchange_code("code-0123456789", "acme.example.io")


@pytest.mark.anyio
async def test_non_json_body_raises_invalid_response() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>oops</html>")

    with pytest.raises(InvalidUpstreamResponseError):
        await _client(handler).refresh("r-1")


@pytest.mark.anyio
async def test_rejected_grant_raises_with_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, content=json.dumps({"error": "invalid_grant"}).encode())

    with pytest.raises(UpstreamExchangeFailedError) as excinfo:
        await _client(handler).refresh("r-1")

    assert excinfo.value.status_code == 400
    assert "r-1" not in str(excinfo.value)


@pytest.mark.anyio
async def test_unreachable_provider_raises_exchange_failure() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(UpstreamExchangeFailedError):
        await _client(handler).refresh("r-1")
    assert len(calls) == 3
