"""
FastAPI routes for the tenant auth proxy.
"""

from __future__ import annotations

import html
import logging
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from tenant_proxy.api.guards import ProxyAccessDependency
from tenant_proxy.core.errors import (
    InvalidTenantError,
    NotAuthorizedError,
    TransportFailureError,
    UpstreamExchangeFailedError,
    ValidationFailedError,
)
from tenant_proxy.dependencies import (
    get_app_settings,
    get_authorization_coordinator,
    get_request_forwarder,
    get_tenant_settings,
    get_token_lifecycle_manager,
)
from tenant_proxy.schemas import (
    AuthorizationStartResponse,
    CacheClearResult,
    HealthStatus,
    ProxyErrorBody,
    TenantTokenStatus,
)
from tenant_proxy.security.validators import validate_tenant_host
from tenant_proxy.services.forwarder import extract_row_count

router = APIRouter()
logger = logging.getLogger(__name__)


def _render_page(title: str, *paragraphs: str) -> str:
    body = "".join(f"<p>{html.escape(text)}</p>" for text in paragraphs if text)
    return (
        "<!DOCTYPE html><html><head>"
        f"<title>{html.escape(title)}</title>"
        "<style>body { font-family: sans-serif; max-width: 600px; margin: 50px auto; "
        "padding: 20px; text-align: center; } p { color: #666; }</style>"
        f"</head><body><h1>{html.escape(title)}</h1>{body}</body></html>"
    )


def _wants_redirect(request: Request, redirect: bool) -> bool:
    accept_header = request.headers.get("accept", "")
    return redirect or "text/html" in accept_header.lower()


@router.get("/healthz", response_model=HealthStatus, status_code=HTTPStatus.OK)
async def healthcheck(settings: Annotated[Any, Depends(get_app_settings)]) -> HealthStatus:
    """Health endpoint for monitoring; no authentication required."""
    return HealthStatus(
        time_utc=datetime.now(timezone.utc), app_version=settings.app_version
    )


@router.get("/auth/start", status_code=HTTPStatus.OK)
async def start_authorization(
    request: Request,
    coordinator: Annotated[Any, Depends(get_authorization_coordinator)],
    tenant_host: str = Query(..., alias="tenantHost", description="Tenant host to authorize."),
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the provider consent screen.",
    ),
) -> Any:
    """Kick off the OAuth flow for a tenant."""
    try:
        authorization = coordinator.start_authorization(tenant_host)
    except InvalidTenantError as exc:
        logger.warning("OAuth start rejected: %s", exc)
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc)) from exc

    if _wants_redirect(request, redirect):
        return RedirectResponse(
            url=authorization.authorization_url,
            status_code=HTTPStatus.TEMPORARY_REDIRECT,
        )
    return AuthorizationStartResponse(
        tenant_host=authorization.tenant_host,
        authorization_url=authorization.authorization_url,
    )


@router.get("/auth/callback", response_class=HTMLResponse)
async def complete_authorization(
    coordinator: Annotated[Any, Depends(get_authorization_coordinator)],
    code: str | None = Query(default=None, description="Authorization code."),
    state: str | None = Query(default=None, description="State issued by /auth/start."),
    error: str | None = Query(default=None),
    error_description: str | None = Query(default=None),
) -> HTMLResponse:
    """Complete the OAuth exchange and persist the tenant's refresh token."""
    if error:
        logger.error("OAuth error from provider: %s", error)
        return HTMLResponse(
            _render_page("Authorization Failed", f"Error: {error}", error_description or ""),
            status_code=HTTPStatus.BAD_REQUEST,
        )

    try:
        tenant = await coordinator.complete_authorization(code, state)
    except ValidationFailedError as exc:
        logger.warning("OAuth callback rejected: %s", exc)
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc)) from exc
    except UpstreamExchangeFailedError:
        logger.exception("Error completing OAuth callback")
        return HTMLResponse(
            _render_page(
                "Authorization Failed",
                "An error occurred while completing authorization.",
                "Please try again or contact support.",
            ),
            status_code=HTTPStatus.BAD_GATEWAY,
        )

    return HTMLResponse(
        _render_page(
            "Authorization Complete",
            f"Successfully authorized tenant: {tenant}",
            "You can close this window.",
        )
    )


@router.api_route(
    "/proxy/{tenant_host}/{path:path}",
    methods=["GET", "POST"],
    dependencies=[ProxyAccessDependency],
)
async def proxy_request(
    tenant_host: str,
    path: str,
    request: Request,
    forwarder: Annotated[Any, Depends(get_request_forwarder)],
) -> Response:
    """Relay a GET/POST to the tenant's upstream API."""
    method = request.method
    if method == "GET" and request.headers.get("content-length", "0") != "0":
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail="GET requests cannot have a body"
        )
    body = await request.body() if method == "POST" else None

    try:
        result = await forwarder.forward(
            tenant_host, path, method, dict(request.query_params), body
        )
    except ValidationFailedError as exc:
        logger.warning("Proxy request rejected: %s", exc)
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc)) from exc
    except NotAuthorizedError as exc:
        return JSONResponse(
            status_code=HTTPStatus.UNAUTHORIZED,
            content=ProxyErrorBody(
                error="Tenant not authorized. Please complete OAuth flow first.",
                hint=f"Visit /auth/start?tenantHost={exc.tenant_host}",
            ).model_dump(),
        )
    except (UpstreamExchangeFailedError, TransportFailureError) as exc:
        logger.error("Proxy request for %s failed: %s", tenant_host, exc)
        return JSONResponse(
            status_code=HTTPStatus.BAD_GATEWAY,
            content=ProxyErrorBody(
                error="Failed to proxy request to upstream"
            ).model_dump(exclude_none=True),
        )

    headers = {
        "x-proxy-tenant": result.tenant_host,
        "x-proxy-target": result.target_url,
        "x-proxy-duration-ms": str(result.duration_ms),
    }
    row_count = extract_row_count(result.json())
    if row_count is not None:
        headers["x-proxy-row-count"] = str(row_count)

    return Response(
        content=result.content,
        status_code=result.status_code,
        media_type=result.media_type,
        headers=headers,
    )


@router.post(
    "/admin/cache/clear",
    response_model=CacheClearResult,
    dependencies=[ProxyAccessDependency],
)
async def clear_token_cache(
    lifecycle: Annotated[Any, Depends(get_token_lifecycle_manager)],
    tenants: Annotated[Any, Depends(get_tenant_settings)],
    tenant_host: str | None = Query(default=None, alias="tenantHost"),
) -> CacheClearResult:
    """Drop cached access tokens for one tenant, or for all tenants."""
    tenant = None
    if tenant_host:
        try:
            tenant = validate_tenant_host(tenant_host, tenant_domain=tenants.tenant_domain)
        except InvalidTenantError as exc:
            raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc)) from exc
    await lifecycle.clear_cache(tenant)
    return CacheClearResult(cleared=tenant or "all")


@router.get(
    "/admin/tenants/{tenant_host}/state",
    response_model=TenantTokenStatus,
    dependencies=[ProxyAccessDependency],
)
async def tenant_token_state(
    tenant_host: str,
    lifecycle: Annotated[Any, Depends(get_token_lifecycle_manager)],
    tenants: Annotated[Any, Depends(get_tenant_settings)],
) -> TenantTokenStatus:
    try:
        tenant = validate_tenant_host(tenant_host, tenant_domain=tenants.tenant_domain)
    except InvalidTenantError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc)) from exc
    return TenantTokenStatus(tenant_host=tenant, state=(await lifecycle.state_of(tenant)).value)


__all__ = ["router"]
