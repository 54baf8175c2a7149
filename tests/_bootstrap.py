"""Test helper that normalizes sys.path and environment defaults."""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


_DEFAULT_ENV_VARS: dict[str, str] = {
    "IDP_BASE_URL": "https://id.example.io",
    "IDP_CLIENT_ID": "test-client-id",
    "IDP_REDIRECT_URI": "https://proxy.example.com/auth/callback",
    "TENANT_DOMAIN": "example.io",
    "TOKEN_ENCRYPTION_SECRET": "test-secret",
    "STATE_SIGNING_SECRET": "test-state-secret",
    "SECRET_STORE_DB_PATH": str(
        Path(tempfile.gettempdir()) / "tenant-proxy-tests" / "secrets.db"
    ),
}

for key, value in _DEFAULT_ENV_VARS.items():
    os.environ.setdefault(key, value)
