"""Tests for the environment pre-flight check script."""

from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import os
from pathlib import Path
from unittest import mock

import pytest

from scripts import check_env

REQUIRED_ENV_KEYS = [
    "IDP_CLIENT_ID",
    "IDP_CLIENT_SECRET",
    "IDP_REDIRECT_URI",
    "TOKEN_ENCRYPTION_SECRET",
    "STATE_SIGNING_SECRET",
]


@pytest.fixture(autouse=True)
def isolated_environ():
    with mock.patch.dict(os.environ):
        for key in REQUIRED_ENV_KEYS:
            os.environ.pop(key, None)
        yield


def _write_env(env_path: Path, **values: str) -> None:
    contents = "\n".join(f"{key}={value}" for key, value in values.items())
    env_path.write_text(contents + "\n", encoding="utf-8")


def test_main_requires_existing_env_file(tmp_path: Path) -> None:
    exit_code = check_env.main(["--env-file", str(tmp_path / ".missing-env")])
    assert exit_code == check_env.EXIT_RUNTIME_ERROR


def test_complete_configuration_passes(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    env_file = tmp_path / ".env"
    _write_env(
        env_file,
        IDP_CLIENT_ID="abc",
        IDP_REDIRECT_URI="https://proxy.example.com/auth/callback",
        TOKEN_ENCRYPTION_SECRET="secret",
        STATE_SIGNING_SECRET="state",
    )

    exit_code = check_env.main(["--env-file", str(env_file)])

    captured = capsys.readouterr()
    assert exit_code == check_env.EXIT_OK
    assert "Configuration OK" in captured.out
    assert captured.err == ""


def test_checksum_commands_are_gone() -> None:
    with pytest.raises(SystemExit):
        check_env.main(["record", "--hash-file", "x"])
    assert not hasattr(check_env, "EXIT_CHECKSUM_ERROR")


def test_validation_failure_for_missing_required_values(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    _write_env(env_file, IDP_CLIENT_ID="abc", TOKEN_ENCRYPTION_SECRET="secret")

    exit_code = check_env.main(["--env-file", str(env_file)])
    assert exit_code == check_env.EXIT_VALIDATION_ERROR


def test_sqlite_backend_needs_an_encryption_secret(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    _write_env(
        env_file,
        IDP_CLIENT_ID="abc",
        IDP_REDIRECT_URI="https://proxy.example.com/auth/callback",
    )

    exit_code = check_env.main(["--env-file", str(env_file)])
    assert exit_code == check_env.EXIT_VALIDATION_ERROR


def test_missing_state_secret_is_only_a_warning(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    env_file = tmp_path / ".env"
    _write_env(
        env_file,
        IDP_CLIENT_ID="abc",
        IDP_CLIENT_SECRET="client-secret",
        IDP_REDIRECT_URI="https://proxy.example.com/auth/callback",
    )

    exit_code = check_env.main(["--env-file", str(env_file)])

    assert exit_code == check_env.EXIT_OK
    assert "STATE_SIGNING_SECRET" in capsys.readouterr().err
