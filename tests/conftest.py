"""
Shared fixtures.
"""

from __future__ import annotations

from typing import Any

import pytest
from pydantic import BaseModel, Field

from gatedcrud.auth.authorizer import Authorizer, PermissionSetAuthorizer
from gatedcrud.auth.context import Principal, RequestContext
from gatedcrud.config import Settings
from gatedcrud.controller.base import Controller
from gatedcrud.core.events import InMemoryPubSub
from gatedcrud.core.registry import ModelRegistry
from gatedcrud.core.utils import id_for
from gatedcrud.responses import ActionResultSink
from gatedcrud.storage.memory import InMemoryModel


# =============================================================================
# Doubles
# =============================================================================


class WidgetSchema(BaseModel):
    name: str = Field(min_length=1)
    color: str | None = None
    maker: Any = None
    producer: Any = None
    secret: str | None = None


class RecordingModel(InMemoryModel):
    """In-memory model that remembers store calls."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.created: list[dict[str, Any]] = []
        self.destroyed: list[Any] = []

    async def create(self, values):
        self.created.append(dict(values))
        return await super().create(values)

    async def destroy(self, pk):
        self.destroyed.append(pk)
        return await super().destroy(pk)


class ScriptedAuthorizer(Authorizer):
    """Authorizer with scripted per-record outcomes."""

    def __init__(self, type: Any = "widget", allow: bool = True):
        super().__init__(type)
        self.allow = allow
        self.deny_ids: set[Any] = set()
        self.error_ids: set[Any] = set()
        self.calls: list[tuple[str, Any]] = []

    async def authorize_for(self, ctx, record, action):
        record_id = id_for(record)
        self.calls.append((action, record_id))
        if record_id in self.error_ids:
            raise RuntimeError("authorization store unavailable")
        if record_id in self.deny_ids:
            return False
        return self.allow


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def settings():
    """Settings isolated from the environment."""
    return Settings(_env_file=None, environment="test", debug=True, mirror=False, auto_watch=True)


@pytest.fixture
def registry():
    """Registry with widget and maker models."""
    registry = ModelRegistry()
    registry.register(InMemoryModel("maker", global_id="Maker", registry=registry))
    registry.register(
        RecordingModel(
            "widget",
            global_id="Widget",
            schema=WidgetSchema,
            associations={"maker": "maker"},
            registry=registry,
        )
    )
    return registry


@pytest.fixture
def widgets(registry):
    return registry.get("widget")


@pytest.fixture
def pubsub():
    return InMemoryPubSub()


@pytest.fixture
def authorizer():
    return ScriptedAuthorizer("widget")


@pytest.fixture
def controller(registry, pubsub, authorizer, settings):
    """Controller over widgets with a scripted authorizer."""
    return Controller(authorizer, models=registry, pubsub=pubsub, settings=settings)


@pytest.fixture
def permission_controller(registry, pubsub, settings):
    """Controller using the reference permission-set policy."""
    return Controller(
        "Widget",
        models=registry,
        pubsub=pubsub,
        core_authorizer=PermissionSetAuthorizer,
        settings=settings,
    )


@pytest.fixture
def sink():
    return ActionResultSink()


@pytest.fixture
def user():
    return Principal(id="user_1")


@pytest.fixture
def admin():
    return Principal(id="admin_1", groups={"admin"})


@pytest.fixture
def make_ctx(user):
    """Factory for request contexts (authenticated by default)."""

    def factory(user: Principal | None = user, **params: Any) -> RequestContext:
        options = params.pop("options", {})
        return RequestContext(user=user, params=params, options=options)

    return factory
