"""
Write actions: create, update and destroy.

Store rejections (validation failures) are negotiated into client errors;
everything else that goes wrong is a server error. Nothing is rolled back
here; partial side effects are the store's responsibility.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from gatedcrud.controller.actions import (
    NOT_FOUND_MESSAGE,
    apply_populate,
    first_record,
    not_authorized,
    publish_origin,
    query_options,
)
from gatedcrud.controller.params import parse_model, parse_values, require_pk
from gatedcrud.core.models import Scenario, decide
from gatedcrud.core.utils import id_for
from gatedcrud.errors import MissingPrimaryKey

if TYPE_CHECKING:
    from gatedcrud.auth.context import RequestContext
    from gatedcrud.controller.base import BaseController
    from gatedcrud.responses import ResponseSink

logger = logging.getLogger(__name__)


async def create_record(controller: BaseController, ctx: RequestContext, res: ResponseSink) -> Any:
    """
    Create a record from the request parameters.

    Blacklisted params (from the 'create' query configuration) never reach
    the payload. Responds *created* with the exported record.
    """
    res = res.bind(controller.settings)
    try:
        model = parse_model(controller, ctx)
        opts = query_options(controller, ctx, Scenario.CREATE)
        data = parse_values(ctx, opts.blacklist)
    except Exception as e:
        return res.server_error(e)

    decision = await decide(controller.can_create(ctx))
    if decision.is_failed:
        return res.server_error(decision.error)
    if decision.is_denied:
        logger.debug(f"Create of {model.identity} denied")
        return res.forbidden(not_authorized("create", model))

    try:
        data = await controller.before_create(ctx, data)
    except Exception as e:
        return res.server_error(e)

    if data is None:
        return res.ok(None)

    try:
        record = await model.create(data)
    except Exception as e:
        return res.negotiate(e)

    pubsub = controller.pubsub
    try:
        if pubsub is not None:
            if ctx.is_socket:
                pubsub.subscribe(ctx, model, record)
                pubsub.introduce(model, record)
            await pubsub.publish_create(model, record, publish_origin(controller, ctx))

        body = await controller.export(ctx, record)
        await controller.after_create(ctx, record)
    except Exception as e:
        return res.server_error(e)

    return res.created(body)


async def update_one_record(controller: BaseController, ctx: RequestContext, res: ResponseSink) -> Any:
    """Update the record with the requested primary key."""
    res = res.bind(controller.settings)
    try:
        model = parse_model(controller, ctx)
        pk = require_pk(ctx)
        opts = query_options(controller, ctx, Scenario.UPDATE)
        values = parse_values(ctx, opts.blacklist)
    except MissingPrimaryKey as e:
        return res.negotiate(e)
    except Exception as e:
        return res.server_error(e)

    values.pop("id", None)

    try:
        record = await model.find_one(pk).exec()
    except Exception as e:
        return res.server_error(e)

    if record is None:
        return res.not_found({"error": NOT_FOUND_MESSAGE})

    decision = await decide(controller.can_update(ctx, record))
    if decision.is_failed:
        return res.server_error(decision.error)
    if decision.is_denied:
        logger.debug(f"Update of {model.identity} {pk} denied")
        return res.forbidden(not_authorized("update", model))

    try:
        values = await controller.before_update(ctx, values, record)
    except Exception as e:
        return res.server_error(e)

    if values is None:
        return res.ok(None)

    try:
        updated = await model.update(pk, values)
    except Exception as e:
        return res.negotiate(e)

    updated_record = first_record(updated)
    if updated_record is None:
        return res.not_found({"error": NOT_FOUND_MESSAGE})

    pubsub = controller.pubsub
    try:
        query = apply_populate(model.find_one(updated_record.id), opts.populate, ctx, model)
        updated_record = await query.exec() or updated_record

        if pubsub is not None:
            await pubsub.publish_update(
                model, updated_record.id, values, publish_origin(controller, ctx), previous=record
            )
            if ctx.is_socket:
                pubsub.subscribe(ctx, model, updated_record)

        body = await controller.export(ctx, updated_record)
        await controller.after_update(ctx, updated_record)
    except Exception as e:
        return res.server_error(e)

    return res.ok(body)


async def destroy_one_record(controller: BaseController, ctx: RequestContext, res: ResponseSink) -> Any:
    """
    Destroy the record with the requested primary key.

    Responds with the record as it was before deletion.
    """
    res = res.bind(controller.settings)
    try:
        model = parse_model(controller, ctx)
        pk = require_pk(ctx)
        opts = query_options(controller, ctx, Scenario.DESTROY, populate=True)
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

    decision = await decide(controller.can_delete(ctx, record))
    if decision.is_failed:
        return res.server_error(decision.error)
    if decision.is_denied:
        logger.debug(f"Delete of {model.identity} {pk} denied")
        return res.forbidden(not_authorized("delete", model))

    try:
        record = await controller.before_delete(ctx, record)
    except Exception as e:
        return res.server_error(e)

    if record is None:
        return res.ok(None)

    try:
        await model.destroy(pk)
    except Exception as e:
        return res.negotiate(e)

    pubsub = controller.pubsub
    try:
        if pubsub is not None:
            await pubsub.publish_destroy(model, id_for(record), publish_origin(controller, ctx), previous=record)
            if ctx.is_socket:
                pubsub.unsubscribe(ctx, model, record)
                pubsub.retire(model, record)

        await controller.after_delete(ctx, record)
    except Exception as e:
        return res.server_error(e)

    return res.ok(record.to_json() if hasattr(record, "to_json") else record)
