"""
Read actions: find (many) and find one.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from gatedcrud.controller.actions import (
    NOT_FOUND_MESSAGE,
    apply_populate,
    gather_or_cancel,
    not_authorized,
    query_options,
)
from gatedcrud.controller.params import (
    parse_criteria,
    parse_limit,
    parse_model,
    parse_pk,
    parse_skip,
    parse_sort,
    require_pk,
    subscribe_deep,
)
from gatedcrud.core.models import Scenario, decide
from gatedcrud.errors import MissingPrimaryKey

if TYPE_CHECKING:
    from gatedcrud.auth.context import RequestContext
    from gatedcrud.controller.base import BaseController
    from gatedcrud.responses import ResponseSink

logger = logging.getLogger(__name__)


async def find_one_record(controller: BaseController, ctx: RequestContext, res: ResponseSink) -> Any:
    """
    Find one record by primary key.

    Anonymous callers that are denied get *not found* rather than
    *forbidden*, so they cannot discover which ids exist.
    """
    res = res.bind(controller.settings)
    try:
        model = parse_model(controller, ctx)
        pk = require_pk(ctx)
        opts = query_options(controller, ctx, Scenario.FIND_ONE, populate=True)
    except MissingPrimaryKey as e:
        return res.negotiate(e)
    except Exception as e:
        return res.server_error(e)

    try:
        query = apply_populate(model.find_one(pk), opts.populate, ctx, model)
        record = await query.exec()
    except Exception as e:
        return res.server_error(e)

    if record is None:
        return res.not_found({"error": NOT_FOUND_MESSAGE})

    decision = await decide(controller.can_read(ctx, record))
    if decision.is_failed:
        return res.server_error(decision.error)

    if not controller.authorizer.is_request_authorized(ctx):
        return res.not_found({"error": NOT_FOUND_MESSAGE})

    if decision.is_denied:
        logger.debug(f"Read of {model.identity} {pk} denied")
        return res.forbidden(not_authorized("view", model))

    try:
        record = await controller.before_read(ctx, record)
    except Exception as e:
        return res.server_error(e)

    if record is None:
        return res.ok(None)

    try:
        if controller.pubsub is not None and ctx.is_socket:
            controller.pubsub.subscribe(ctx, model, record)
            subscribe_deep(controller.pubsub, ctx, model, record)

        body = await controller.export(ctx, record)
        await controller.after_read(ctx, record)
    except Exception as e:
        return res.server_error(e)

    return res.ok(body)


async def find_records(controller: BaseController, ctx: RequestContext, res: ResponseSink) -> Any:
    """
    Find records matching the request criteria.

    An ``id`` param delegates to ``find_one``. Records the caller may not
    list, or whose check fails, are dropped; order follows the store.
    """
    res = res.bind(controller.settings)
    try:
        model = parse_model(controller, ctx)
    except Exception as e:
        return res.server_error(e)

    if parse_pk(ctx) is not None:
        return await controller.find_one(ctx, res)

    try:
        opts = query_options(
            controller,
            ctx,
            Scenario.FIND,
            criteria=True,
            where=None,
            limit=True,
            skip=True,
            sort=True,
            populate=True,
        )
        query = model.find()

        if opts.criteria:
            query = query.where(parse_criteria(ctx, opts.blacklist))

        if opts.where:
            query = query.where(opts.where)

        if opts.limit:
            if isinstance(opts.limit, int) and opts.limit is not True:
                limit = opts.limit
            else:
                limit = parse_limit(ctx, controller.settings)
            if limit is not None:
                query = query.limit(limit)

        if opts.skip:
            skip = opts.skip if isinstance(opts.skip, int) and opts.skip is not True else parse_skip(ctx)
            query = query.skip(skip)

        if opts.sort:
            sort = opts.sort if isinstance(opts.sort, (str, dict)) else parse_sort(ctx)
            if sort:
                query = query.sort(sort)

        query = apply_populate(query, opts.populate, ctx, model)
        matching = await query.exec()
    except Exception as e:
        return res.server_error(e)

    decisions = await gather_or_cancel(decide(controller.can_list(ctx, r)) for r in matching)

    visible = []
    for record, decision in zip(matching, decisions):
        if decision.is_allowed:
            visible.append(record)
        elif decision.is_failed:
            logger.warning(f"Excluding {model.identity} from list after authorization error: {decision.error}")

    pubsub = controller.pubsub
    try:
        if pubsub is not None and ctx.is_socket:
            pubsub.subscribe(ctx, model, visible)
            if ctx.option("auto_watch", controller.settings.auto_watch):
                pubsub.watch(ctx, model)
            for record in visible:
                subscribe_deep(pubsub, ctx, model, record)

        bodies = await gather_or_cancel(controller.export(ctx, r) for r in visible)
    except Exception as e:
        return res.server_error(e)

    return res.ok(bodies)
