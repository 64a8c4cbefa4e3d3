"""
Route binding for one controller.

    POST    /{identity}        create
    GET     /{identity}        find
    GET     /{identity}/{id}   find_one
    PUT     /{identity}/{id}   update
    PATCH   /{identity}/{id}   update
    DELETE  /{identity}/{id}   destroy
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request

from gatedcrud.api.dependencies import build_context, get_principal
from gatedcrud.api.sink import JSONResponseSink
from gatedcrud.auth.context import Principal
from gatedcrud.controller.base import BaseController


def build_router(
    controller: BaseController,
    prefix: str | None = None,
    options: dict[str, Any] | None = None,
) -> APIRouter:
    """
    Build an APIRouter dispatching to ``controller``'s actions.

    Args:
        controller: The controller to bind
        prefix: URL prefix (defaults to "/<model_name>")
        options: Route options copied into every RequestContext
    """
    prefix = prefix if prefix is not None else f"/{controller.model_name}"
    router = APIRouter(prefix=prefix, tags=[controller.model_name or "records"])

    def dispatch(action: str):
        async def endpoint(
            request: Request,
            principal: Principal | None = Depends(get_principal),
        ):
            ctx = await build_context(request, principal, options)
            return await getattr(controller, action)(ctx, JSONResponseSink().bind(controller.settings))

        endpoint.__name__ = f"{controller.model_name}_{action}"
        return endpoint

    router.add_api_route("", dispatch("create"), methods=["POST"])
    router.add_api_route("", dispatch("find"), methods=["GET"])
    router.add_api_route("/{id}", dispatch("find_one"), methods=["GET"])
    router.add_api_route("/{id}", dispatch("update"), methods=["PUT", "PATCH"])
    router.add_api_route("/{id}", dispatch("destroy"), methods=["DELETE"])

    return router
