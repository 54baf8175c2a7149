try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from tenant_proxy.core.errors import (
    InvalidCodeError,
    InvalidMethodError,
    InvalidPathError,
    InvalidStateError,
    InvalidTenantError,
)
from tenant_proxy.security.validators import (
    sanitize_query_params,
    validate_auth_code,
    validate_method,
    validate_oauth_state,
    validate_path,
    validate_tenant_host,
)

DOMAIN = "example.io"


def test_tenant_host_is_normalized() -> None:
    assert validate_tenant_host("  ACME.Example.io ", tenant_domain=DOMAIN) == "acme.example.io"


def test_tenant_host_defaults_to_provider_domain() -> None:
    assert validate_tenant_host("acme.vincere.io") == "acme.vincere.io"


@pytest.mark.parametrize(
    "host",
    [
        "",
        None,
        "evil.com",
        "example.io",
        "a.b.example.io",
        "acme.example.io.evil.com",
        "localhost",
        "169.254.169.254",
        "acme_corp.example.io",
        "x" * 250 + ".example.io",
    ],
)
def test_tenant_host_rejections(host) -> None:
    with pytest.raises(InvalidTenantError):
        validate_tenant_host(host, tenant_domain=DOMAIN)


def test_path_is_trimmed() -> None:
    assert validate_path(" candidate/search ") == "candidate/search"


def test_path_keeps_other_percent_escapes() -> None:
    assert validate_path("candidate/Ada%20Lovelace") == "candidate/Ada%20Lovelace"


@pytest.mark.parametrize(
    "path",
    [
        "",
        "../secret",
        "candidate/../../etc",
        "a//b",
        "/etc/passwd",
        "https://evil.com/x",
        "a\0b",
        "%2e%2e/x",
        "%2E%2e/%2E%2E/internal",
        "a%2fb",
        "a%2Fb",
        "a%5Cb",
    ],
)
def test_path_rejections(path: str) -> None:
    with pytest.raises(InvalidPathError):
        validate_path(path)


def test_method_is_uppercased() -> None:
    assert validate_method("get") == "GET"
    assert validate_method("Post") == "POST"


@pytest.mark.parametrize("method", ["PUT", "DELETE", "PATCH", ""])
def test_method_rejections(method: str) -> None:
    with pytest.raises(InvalidMethodError):
        validate_method(method)


def test_query_params_drop_non_strings_and_control_chars() -> None:
    cleaned = sanitize_query_params({"q": "ab\x00c\x1f", "page": 2, "sort": "name"})
    assert cleaned == {"q": "abc", "sort": "name"}


def test_oauth_state_returns_nonce_and_tenant() -> None:
    nonce = "A" * 20
    assert validate_oauth_state(f"{nonce}:Acme.example.io", tenant_domain=DOMAIN) == (
        nonce,
        "acme.example.io",
    )


@pytest.mark.parametrize(
    "state",
    [
        None,
        "",
        "no-separator",
        "a:b:c",
        "shortnonce:tenant.example.io",
        "A" * 129 + ":tenant.example.io",
        "bad nonce chars!!!!!:tenant.example.io",
        "A" * 20 + ":evil.com",
    ],
)
def test_oauth_state_rejections(state) -> None:
    with pytest.raises(InvalidStateError):
        validate_oauth_state(state, tenant_domain=DOMAIN)


def test_auth_code_accepts_provider_charset() -> None:
    code = "abcDEF123-_=+/xyz"
    assert validate_auth_code(code) == code


@pytest.mark.parametrize("code", [None, "", "short", "x" * 1025, "has spaces in it", "semi;colon;code"])
def test_auth_code_rejections(code) -> None:
    with pytest.raises(InvalidCodeError):
        validate_auth_code(code)
