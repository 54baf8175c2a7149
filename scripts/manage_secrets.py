"""Operator tool for seeding the secrets the proxy reads at request time.

Refresh tokens are written by the OAuth callback. Tenant API keys and the
pre-shared key guarding the proxy routes are provisioned out of band with this
script, against whichever backend ``SECRET_STORE_BACKEND`` selects.

Example usages::

    # Store an upstream API key for a tenant (prompts when --value is omitted).
    python -m scripts.manage_secrets set-api-key acme.vincere.io

    # Generate and store a fresh PSK; the value is printed once.
    python -m scripts.manage_secrets set-psk

    # Print the secret name the proxy uses for a tenant credential.
    python -m scripts.manage_secrets show-name acme.vincere.io refresh_token
"""

from __future__ import annotations

import argparse
import getpass
import sys
import uuid
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from tenant_proxy.clients.secret_store import (
    PSK_SECRET_NAME,
    SecretStore,
    SecretsManagerStore,
    SQLiteSecretStore,
    build_secret_name,
)
from tenant_proxy.core.config import AppSettings, _load_env_file
from tenant_proxy.core.errors import InvalidTenantError, SecretStoreError
from tenant_proxy.security.validators import validate_tenant_host
from tenant_proxy.services.token_cipher import TokenCipherService

EXIT_OK = 0
EXIT_USAGE_ERROR = 2
EXIT_STORE_ERROR = 4
EXIT_RUNTIME_ERROR = 5


def _load_settings(env_file: Path) -> AppSettings:
    _load_env_file(str(env_file))
    return AppSettings()  # type: ignore[call-arg]


def _open_store(settings: AppSettings) -> SecretStore:
    if settings.secrets.backend == "aws":
        return SecretsManagerStore(settings.secrets)
    cipher = TokenCipherService.from_settings(settings.security, settings.identity)
    return SQLiteSecretStore(settings.secrets.db_path, cipher)


def _tenant(settings: AppSettings, raw: str) -> str:
    return validate_tenant_host(raw, tenant_domain=settings.tenants.tenant_domain)


def _set_api_key(
    settings: AppSettings, store: SecretStore, tenant_host: str, value: Optional[str]
) -> int:
    tenant = _tenant(settings, tenant_host)
    api_key = value or getpass.getpass(f"API key for {tenant}: ")
    if not api_key:
        print("An API key value is required.", file=sys.stderr)
        return EXIT_USAGE_ERROR
    name = build_secret_name(tenant, "api_key", namespace=settings.secrets.namespace)
    store.set_secret(name, api_key)
    print(f"Stored API key for {tenant} as {name}")
    return EXIT_OK


def _set_psk(store: SecretStore, value: Optional[str]) -> int:
    psk = value or str(uuid.uuid4())
    store.set_secret(PSK_SECRET_NAME, psk)
    print(f"Stored proxy PSK as {PSK_SECRET_NAME}")
    if not value:
        print(f"Generated PSK (send it as X-Proxy-Token): {psk}")
    return EXIT_OK


def _show_name(settings: AppSettings, tenant_host: str, secret_type: str) -> int:
    tenant = _tenant(settings, tenant_host)
    print(build_secret_name(tenant, secret_type, namespace=settings.secrets.namespace))  # type: ignore[arg-type]
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Provision tenant API keys and the proxy PSK."
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        type=Path,
        help="Path to the environment file (default: .env in the repo root).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    api_key_parser = subparsers.add_parser(
        "set-api-key", help="Store the upstream API key for a tenant."
    )
    api_key_parser.add_argument("tenant_host")
    api_key_parser.add_argument(
        "--value", help="API key value. Prompted for when omitted."
    )

    psk_parser = subparsers.add_parser(
        "set-psk", help="Store the pre-shared key checked against X-Proxy-Token."
    )
    psk_parser.add_argument(
        "--value", help="PSK value. A random UUID is generated when omitted."
    )

    name_parser = subparsers.add_parser(
        "show-name", help="Print the secret name used for a tenant credential."
    )
    name_parser.add_argument("tenant_host")
    name_parser.add_argument("secret_type", choices=["refresh_token", "api_key"])

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        settings = _load_settings(args.env_file)
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_USAGE_ERROR

    try:
        if args.command == "show-name":
            return _show_name(settings, args.tenant_host, args.secret_type)
        store = _open_store(settings)
        if args.command == "set-api-key":
            return _set_api_key(settings, store, args.tenant_host, args.value)
        return _set_psk(store, args.value)
    except InvalidTenantError as exc:
        print(f"Invalid tenant host: {exc}", file=sys.stderr)
        return EXIT_USAGE_ERROR
    except SecretStoreError as exc:
        print(f"Secret store error: {exc}", file=sys.stderr)
        return EXIT_STORE_ERROR
    except ValueError as exc:
        print(f"Secret store configuration is unusable: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
