"""
Request parameter parsing shared by the controller actions.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from gatedcrud.config import Settings, get_settings
from gatedcrud.errors import MissingPrimaryKey

if TYPE_CHECKING:
    from gatedcrud.auth.context import RequestContext
    from gatedcrud.controller.base import Controller
    from gatedcrud.core.events import PubSub
    from gatedcrud.storage.base import Model, Query

# JSONP callback param, never part of a payload
JSONP_CALLBACK_PARAM = "callback"

# Query-modifier params, never part of criteria
QUERY_PARAMS = ("limit", "skip", "sort", "populate", "where", JSONP_CALLBACK_PARAM)


def parse_model(controller: Controller, ctx: RequestContext) -> Model:
    """Resolve the model for this request (``options["model"]`` wins)."""
    identity = ctx.option("model") or controller.model_name
    return controller.models.get(identity)


def parse_pk(ctx: RequestContext) -> Any:
    """The primary key from the request, or None."""
    pk = ctx.param("id")
    if pk is None or pk == "":
        return None
    return pk


def require_pk(ctx: RequestContext) -> Any:
    """The primary key from the request; raises MissingPrimaryKey if absent."""
    pk = parse_pk(ctx)
    if pk is None:
        raise MissingPrimaryKey()
    return pk


def parse_values(ctx: RequestContext, blacklist: list[str] | None = None) -> dict[str, Any]:
    """Build a write payload from every param except blacklisted ones."""
    omit = set(blacklist or ()) | {JSONP_CALLBACK_PARAM}
    return {k: v for k, v in ctx.params.items() if k not in omit and v is not None}


def parse_criteria(ctx: RequestContext, blacklist: list[str] | None = None) -> dict[str, Any]:
    """
    Build query criteria.

    An explicit ``where`` param (mapping or JSON string) is used as-is;
    otherwise every non-modifier param becomes an equality criterion.
    """
    where = ctx.param("where")
    if isinstance(where, str):
        try:
            where = json.loads(where)
        except ValueError:
            where = None
    if isinstance(where, dict):
        return dict(where)

    omit = set(blacklist or ()) | set(QUERY_PARAMS)
    return {k: v for k, v in ctx.params.items() if k not in omit and v is not None}


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_limit(ctx: RequestContext, settings: Settings | None = None) -> int | None:
    """Requested page size; None when it cannot be parsed."""
    value = ctx.param("limit")
    if value is None:
        value = ctx.option("limit", (settings or get_settings()).default_limit)
    return _as_int(value)


def parse_skip(ctx: RequestContext) -> int:
    value = _as_int(ctx.param("skip", 0))
    return value if value and value > 0 else 0


def parse_sort(ctx: RequestContext) -> Any:
    sort = ctx.param("sort")
    if sort is None:
        sort = ctx.option("sort")
    if isinstance(sort, str) and sort.startswith("{"):
        try:
            sort = json.loads(sort)
        except ValueError:
            pass
    return sort


def populate_each(query: Query, ctx: RequestContext, model: Model) -> Query:
    """
    Populate associations on ``query``.

    Uses the comma-separated ``populate`` param when given, otherwise
    every association of the model. ``options["populate"] = False``
    disables population entirely.
    """
    if ctx.option("populate", True) is False:
        return query

    requested = ctx.param("populate")
    if isinstance(requested, str):
        names = [n.strip() for n in requested.strip("[]").replace('"', "").split(",") if n.strip()]
    elif isinstance(requested, list):
        names = list(requested)
    else:
        names = list(model.associations)

    for name in names:
        if name in model.associations:
            query = query.populate(name)
    return query


def populate_list(query: Query, names: list[str]) -> Query:
    for name in names:
        query = query.populate(name)
    return query


def subscribe_deep(pubsub: PubSub, ctx: RequestContext, model: Model, record: Any) -> None:
    """Subscribe the caller to every populated associated record."""
    registry = getattr(model, "registry", None)
    if registry is None:
        return
    for name, identity in model.associations.items():
        value = getattr(record, name, None)
        if not value:
            continue
        associated = registry.get(identity)
        for item in value if isinstance(value, list) else [value]:
            # Unpopulated associations hold bare ids
            if isinstance(item, dict):
                pubsub.subscribe(ctx, associated, item)
