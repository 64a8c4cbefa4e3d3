"""
Controllers - authorization gates and lifecycle hooks around CRUD actions.

A controller binds a resource type to an Authorizer. Every ``can_*`` gate
first runs ``before_authorize`` and then asks the bound authorizer, so a
concrete controller can add request-scoped preconditions (rate limits,
maintenance windows) uniformly ahead of every decision.

Before-hooks return the (possibly rewritten) payload or record; returning
None cancels the action without error. After-hooks return nothing; raising
from any hook aborts the action with a server error.

Example:
    class WidgetController(Controller):
        async def before_create(self, ctx, payload):
            return {**payload, "owner": ctx.user.id}

        async def export(self, ctx, record):
            data = record.to_json()
            data.pop("secret", None)
            return data

    controller = WidgetController("widget", core_authorizer=PermissionSetAuthorizer)
    await controller.create(ctx, ActionResultSink())
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from typing import Any

from gatedcrud.auth.authorizer import Authorizer, DefaultAuthorizer
from gatedcrud.auth.context import RequestContext
from gatedcrud.config import Settings, get_settings
from gatedcrud.controller.actions import read, write
from gatedcrud.core.events import PubSub
from gatedcrud.core.models import is_type_spec
from gatedcrud.core.registry import ModelRegistry, get_registry
from gatedcrud.responses import ResponseSink

logger = logging.getLogger(__name__)

# Action names provided by the library
ACTIONS = ("create", "destroy", "find", "find_one", "findone", "update")


class BaseController(Authorizer):
    """
    Controller base class.

    Args:
        type: The model type (string), a single-entry ``{type: producer}``
            mapping, or a ready Authorizer instance whose type is adopted.
        model_name: Optional model name override (defaults to the lower-cased type)
        models: Registry the actions resolve their model through
        pubsub: Live-update collaborator, or None to disable notifications
        core_authorizer: Authorizer class the default authorizer delegates to
        settings: Settings override (defaults to ``get_settings()``)
    """

    def __init__(
        self,
        type: Any,
        model_name: str | None = None,
        models: ModelRegistry | None = None,
        pubsub: PubSub | None = None,
        core_authorizer: type[Authorizer] | None = None,
        settings: Settings | None = None,
    ):
        self.models = models if models is not None else get_registry()
        self.pubsub = pubsub
        self.core_authorizer_class = core_authorizer
        self.settings = settings or get_settings()

        self.authorizer = self.create_authorizer(type, model_name)

        if is_type_spec(type):
            self.initialize(type)
        else:
            self.initialize(self.authorizer.type)

        if model_name:
            self.model_name = model_name.lower()

    @abstractmethod
    def create_authorizer(self, type: Any, model_name: str | None) -> Authorizer:
        """Create the Authorizer this controller delegates decisions to."""
        pass

    def get_query_configuration(self, ctx: RequestContext, scenario: str) -> dict[str, Any]:
        """
        Query settings for one scenario ('create', 'find', 'findOne',
        'update', 'destroy'). Empty means built-in defaults.
        """
        return {}

    # =========================================================================
    # Gates
    # =========================================================================

    async def authorize_for(self, ctx: RequestContext, record: Any, action: str) -> bool:
        return await self.authorizer.authorize_for(ctx, record, action)

    async def can_delete(self, ctx: RequestContext, record: Any) -> bool:
        await self.before_authorize(ctx)
        return await self.authorizer.can_delete(ctx, record)

    async def can_list(self, ctx: RequestContext, record: Any) -> bool:
        await self.before_authorize(ctx)
        return await self.authorizer.can_list(ctx, record)

    async def can_create(self, ctx: RequestContext) -> bool:
        await self.before_authorize(ctx)
        return await self.authorizer.can_create(ctx)

    async def can_update(self, ctx: RequestContext, record: Any) -> bool:
        await self.before_authorize(ctx)
        return await self.authorizer.can_update(ctx, record)

    async def can_read(self, ctx: RequestContext, record: Any) -> bool:
        await self.before_authorize(ctx)
        return await self.authorizer.can_read(ctx, record)

    # =========================================================================
    # Lifecycle hooks
    # =========================================================================

    async def before_authorize(self, ctx: RequestContext) -> None:
        """Called before every authorization decision. Raise to fail it."""
        pass

    async def before_delete(self, ctx: RequestContext, record: Any) -> Any:
        """Return the record to delete, or None to prevent deletion."""
        return record

    async def after_delete(self, ctx: RequestContext, record: Any) -> None:
        pass

    async def before_read(self, ctx: RequestContext, record: Any) -> Any:
        """Return the record to read, or None to prevent reading."""
        return record

    async def after_read(self, ctx: RequestContext, record: Any) -> None:
        pass

    async def before_create(self, ctx: RequestContext, payload: dict[str, Any]) -> dict[str, Any] | None:
        """Return the attributes to save, or None to cancel the save."""
        return payload

    async def after_create(self, ctx: RequestContext, record: Any) -> None:
        pass

    async def before_update(
        self,
        ctx: RequestContext,
        payload: dict[str, Any],
        record: Any,
    ) -> dict[str, Any] | None:
        """Return the attributes to set on ``record``, or None to cancel the update."""
        return payload

    async def after_update(self, ctx: RequestContext, record: Any) -> None:
        pass

    async def export(self, ctx: RequestContext, record: Any) -> Any:
        """
        The externally visible representation of a record.

        Override to add or remove properties as needed.
        """
        return record.to_json()

    # =========================================================================
    # Actions
    # =========================================================================

    async def create(self, ctx: RequestContext, res: ResponseSink) -> Any:
        return await write.create_record(self, ctx, res)

    async def destroy(self, ctx: RequestContext, res: ResponseSink) -> Any:
        return await write.destroy_one_record(self, ctx, res)

    async def update(self, ctx: RequestContext, res: ResponseSink) -> Any:
        return await write.update_one_record(self, ctx, res)

    async def find(self, ctx: RequestContext, res: ResponseSink) -> Any:
        return await read.find_records(self, ctx, res)

    async def find_one(self, ctx: RequestContext, res: ResponseSink) -> Any:
        return await read.find_one_record(self, ctx, res)

    async def findone(self, ctx: RequestContext, res: ResponseSink) -> Any:
        # lower-case alias used by action-name routing
        return await self.find_one(ctx, res)


class Controller(BaseController):
    """
    Controller with a DefaultAuthorizer.

    A type string (or single-entry producer mapping) gets a DefaultAuthorizer
    delegating to ``core_authorizer``; anything else is taken to already be
    an Authorizer.
    """

    def create_authorizer(self, type: Any, model_name: str | None) -> Authorizer:
        if is_type_spec(type):
            return DefaultAuthorizer(type, core_authorizer=self.core_authorizer_class, settings=self.settings)
        return type
