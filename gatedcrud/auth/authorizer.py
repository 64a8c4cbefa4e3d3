"""
Authorizers - "can the current caller do A to record R?"

An Authorizer is bound to one resource type. Subclasses implement the
single primitive ``authorize_for``; every ``can_*`` method is expressed in
terms of it and may be overridden individually.

Usage:
    class OwnerAuthorizer(Authorizer):
        async def authorize_for(self, ctx, record, action):
            return record is None or record.owner == ctx.user.id

    await OwnerAuthorizer("widget").can_read(ctx, widget)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from gatedcrud.auth.capabilities import has_permission
from gatedcrud.auth.context import RequestContext
from gatedcrud.config import Settings, get_settings
from gatedcrud.core.models import Action, ResourceType
from gatedcrud.errors import AuthorizerNotConfigured

logger = logging.getLogger(__name__)


class Authorizer(ABC):
    """
    Authorizer base class.

    Args:
        type: The model type, or a single-entry mapping from model type to
            the producer (model or id) the type is scoped to.
        settings: Settings override (defaults to ``get_settings()``)
    """

    def __init__(self, type: Any = None, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.initialize(type)

    def initialize(self, type: Any) -> None:
        """Initialize this instance."""
        self.set_type(type)

    def set_type(self, type: Any) -> None:
        """Set the type this authorizer is bound to."""
        self.type = type
        self.resource_type = ResourceType.parse(type)
        self.model_name = self.resource_type.model_name

    # =========================================================================
    # Checks
    # =========================================================================

    def is_request_authorized(self, ctx: RequestContext) -> bool:
        """True if the request carries an authenticated principal."""
        user = getattr(ctx, "user", None)
        return user is not None and not isinstance(user, (str, bytes, int, float, bool))

    async def can_list(self, ctx: RequestContext, record: Any) -> bool:
        """
        Whether ``record`` can be shown in a list.

        The default implementation is equivalent to ``can_read``.
        """
        return await self.can_read(ctx, record)

    async def can_read(self, ctx: RequestContext, record: Any) -> bool:
        return await self.authorize_for(ctx, record, Action.READ.value)

    async def can_update(self, ctx: RequestContext, record: Any) -> bool:
        return await self.authorize_for(ctx, record, Action.UPDATE.value)

    async def can_delete(self, ctx: RequestContext, record: Any) -> bool:
        return await self.authorize_for(ctx, record, Action.DELETE.value)

    async def can_create(self, ctx: RequestContext) -> bool:
        return await self.authorize_for(ctx, None, Action.CREATE.value)

    @abstractmethod
    async def authorize_for(self, ctx: RequestContext, record: Any, action: str) -> bool:
        """
        Decide whether ``action`` may be performed on ``record``.

        Return True or False. Raise if the decision cannot be evaluated;
        a raised error is a failure, never a denial.
        """
        pass

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(type={self.type!r})>"


class PermissionSetAuthorizer(Authorizer):
    """
    Reference policy.

    Principals in the admin group are authorized for every action.
    Otherwise the principal's permission set is consulted for the
    resource type/action pair. Anonymous callers are always denied.
    """

    def __init__(
        self,
        type: Any = None,
        admin_group: str | None = None,
        settings: Settings | None = None,
    ):
        super().__init__(type, settings)
        self.admin_group = admin_group or self.settings.admin_group

    async def authorize_for(self, ctx: RequestContext, record: Any, action: str) -> bool:
        if not self.is_request_authorized(ctx):
            return False

        user = ctx.user
        if self.admin_group in getattr(user, "groups", ()):
            return True

        permissions = set(getattr(user, "permissions", ()) or ())
        return has_permission(permissions, self.resource_type, action, record)


class DefaultAuthorizer(Authorizer):
    """
    Thin adapter over a core authorizer class chosen at startup.

    The core instance is built lazily on first use and reused afterwards.
    Building it twice is harmless, so no lock guards the cache. The core
    class is constructed as ``core_authorizer(type, settings=settings)``.
    """

    def __init__(
        self,
        type: Any = None,
        core_authorizer: type[Authorizer] | None = None,
        settings: Settings | None = None,
    ):
        self._core_authorizer_class = core_authorizer
        self._authorizer: Authorizer | None = None
        super().__init__(type, settings)

    @property
    def core_authorizer(self) -> Authorizer | None:
        if self._authorizer is None and self._core_authorizer_class is not None:
            self._authorizer = self._core_authorizer_class(self.type, settings=self.settings)
            logger.debug(f"Built core authorizer {self._authorizer!r}")
        return self._authorizer

    async def authorize_for(self, ctx: RequestContext, record: Any, action: str) -> bool:
        core = self.core_authorizer
        if core is None:
            raise AuthorizerNotConfigured(self.model_name)
        return await core.authorize_for(ctx, record, action)
