"""Pre-flight check for the proxy's environment configuration.

Loads ``AppSettings`` from a ``.env`` file and confirms the configured secret
store backend can actually be opened, so a missing client id or encryption
secret is reported before the service starts handing out 500s.

Example::

    python -m scripts.check_env --env-file /opt/tenant-proxy/.env
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from pydantic import ValidationError

from tenant_proxy.core.config import AppSettings, _load_env_file
from tenant_proxy.services.token_cipher import TokenCipherService

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_RUNTIME_ERROR = 5


def _validate_settings(env_file: Path) -> tuple[AppSettings, list[str]]:
    """
    Build the settings from ``env_file`` and collect non-fatal warnings.

    Raises ``ValidationError`` for missing values and ``ValueError`` when the
    sqlite backend has no usable encryption secret.
    """
    _load_env_file(str(env_file))
    settings = AppSettings()  # type: ignore[call-arg]

    if settings.secrets.backend == "sqlite":
        TokenCipherService.from_settings(settings.security, settings.identity)

    warnings: list[str] = []
    security = settings.security
    if not (security.state_signing_secret or security.token_encryption_secret):
        warnings.append(
            "STATE_SIGNING_SECRET is not set; OAuth state will only verify on the "
            "instance that issued it."
        )
    return settings, warnings


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate the proxy's settings before starting it."
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        type=Path,
        help="Path to the environment file (default: .env in the working directory).",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    env_file: Path = args.env_file

    if not env_file.exists():
        print(f"Environment file {env_file} does not exist.", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    try:
        settings, warnings = _validate_settings(env_file)
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR
    except ValueError as exc:
        print(f"Secret store configuration is unusable: {exc}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Unexpected error during validation: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    for warning in warnings:
        print(f"warning: {warning}", file=sys.stderr)
    print(
        f"Configuration OK (secret store: {settings.secrets.backend}, "
        f"tenant domain: {settings.tenants.tenant_domain})"
    )
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
