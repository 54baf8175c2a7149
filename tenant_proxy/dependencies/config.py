"""
FastAPI dependency utilities for injecting configuration.
"""

from functools import lru_cache

from fastapi import Depends

from tenant_proxy.core.config import AppSettings, SecuritySettings, TenantSettings, get_settings


@lru_cache()
def _settings_singleton() -> AppSettings:
    """Ensure configuration is created once per process."""
    return get_settings()


def get_app_settings() -> AppSettings:
    """FastAPI dependency returning application settings."""
    return _settings_singleton()


def get_tenant_settings(settings: AppSettings = Depends(get_app_settings)) -> TenantSettings:
    return settings.tenants


def get_security_settings(settings: AppSettings = Depends(get_app_settings)) -> SecuritySettings:
    return settings.security


__all__ = [
    "get_app_settings",
    "get_security_settings",
    "get_tenant_settings",
]
