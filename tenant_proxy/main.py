"""
FastAPI application entrypoint for the tenant auth proxy.
"""

from __future__ import annotations

import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tenant_proxy.api.routes import router as api_router
from tenant_proxy.core.config import get_settings
from tenant_proxy.core.logging import configure_logging, correlation_id_var

CORRELATION_ID_HEADER = "x-correlation-id"

logger = logging.getLogger(__name__)


async def _bind_correlation_id(request: Request, call_next):
    correlation_id = (
        request.headers.get(CORRELATION_ID_HEADER)
        or request.headers.get("x-request-id")
        or str(uuid.uuid4())
    )
    token = correlation_id_var.set(correlation_id)
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        response = JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "correlation_id": correlation_id},
        )
    finally:
        correlation_id_var.reset(token)
    response.headers[CORRELATION_ID_HEADER] = correlation_id
    return response


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Tenant Auth Proxy",
        version=settings.app_version,
        description="OAuth-authenticated REST relay for multi-tenant upstream APIs.",
    )
    app.middleware("http")(_bind_correlation_id)
    app.include_router(api_router)
    return app


app = create_app()

__all__ = ["app", "create_app"]
