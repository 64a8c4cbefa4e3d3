"""
FastAPI dependencies - turn an HTTP request into a RequestContext.
"""

from __future__ import annotations

from typing import Any

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from gatedcrud.auth.context import Principal, RequestContext
from gatedcrud.auth.tokens import principal_from_token
from gatedcrud.config import get_settings

# Optional JWT bearer (doesn't fail if no token)
optional_bearer = HTTPBearer(auto_error=False)


async def get_principal(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(optional_bearer),
) -> Principal | None:
    """The authenticated principal, or None for anonymous requests."""
    if not credentials:
        return None
    hook = getattr(request.app.state, "hook", None)
    settings = hook.settings if hook is not None else get_settings()
    return principal_from_token(credentials.credentials, settings)


async def read_params(request: Request) -> dict[str, Any]:
    """Merge query, JSON body and path params (path params win)."""
    params: dict[str, Any] = dict(request.query_params)

    if request.method in ("POST", "PUT", "PATCH"):
        try:
            body = await request.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            params.update(body)

    params.update(request.path_params)
    return params


async def build_context(
    request: Request,
    principal: Principal | None,
    options: dict[str, Any] | None = None,
) -> RequestContext:
    """Build the per-request context for one action."""
    return RequestContext(
        user=principal,
        params=await read_params(request),
        options=dict(options or {}),
        metadata={"method": request.method, "path": request.url.path},
    )
