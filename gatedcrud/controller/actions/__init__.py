"""
Action handlers.

Each handler is an orchestration recipe over a controller: resolve the
model, parse parameters, run the authorization gate, run the before-hook,
perform the store operation, notify pub/sub, export, run the after-hook,
respond. The first error short-circuits the rest of the pipeline.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Iterable
from typing import TYPE_CHECKING, Any

from gatedcrud.controller.params import populate_each, populate_list
from gatedcrud.core.models import QueryConfiguration, Scenario

if TYPE_CHECKING:
    from gatedcrud.auth.context import RequestContext
    from gatedcrud.controller.base import BaseController
    from gatedcrud.storage.base import Model, Query

NOT_FOUND_MESSAGE = "No record found with the specified `id`."


def not_authorized(verb: str, model: Model) -> dict[str, str]:
    return {"error": f"You are not authorized to {verb} this {model.global_id}"}


def publish_origin(controller: BaseController, ctx: RequestContext) -> RequestContext | None:
    """The context to exclude from notifications, or None when mirroring."""
    if ctx.option("mirror", controller.settings.mirror):
        return None
    return ctx


def apply_populate(query: Query, populate: Any, ctx: RequestContext, model: Model) -> Query:
    """Populate an explicit association list, or derive it from the request."""
    if not populate:
        return query
    if isinstance(populate, (list, tuple)):
        return populate_list(query, list(populate))
    return populate_each(query, ctx, model)


def first_record(records: Any) -> Any:
    if isinstance(records, (list, tuple)):
        return records[0] if records else None
    return records


def query_options(
    controller: BaseController,
    ctx: RequestContext,
    scenario: Scenario,
    **defaults: Any,
) -> QueryConfiguration:
    """
    Resolve the query configuration for one action.

    Controller overrides win over ``defaults``; a ``blacklist`` route option
    is added to the resolved blacklist.
    """
    opts = QueryConfiguration.resolve(controller.get_query_configuration(ctx, scenario.value), **defaults)
    route_blacklist = ctx.option("blacklist")
    if isinstance(route_blacklist, str):
        route_blacklist = [route_blacklist]
    if route_blacklist:
        opts.blacklist = [*(opts.blacklist or []), *route_blacklist]
    return opts


async def gather_or_cancel(aws: Iterable[Awaitable[Any]]) -> list[Any]:
    """
    Await every awaitable concurrently, keeping input order.

    If one fails, the others are cancelled and awaited before the error
    is re-raised.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
