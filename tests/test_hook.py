"""
Tests for startup wiring and action layering.
"""

import pytest

from gatedcrud.auth.authorizer import PermissionSetAuthorizer
from gatedcrud.auth.context import Principal
from gatedcrud.config import Settings
from gatedcrud.controller.base import Controller
from gatedcrud.errors import ConfigurationError
from gatedcrud.hook import GatedCrudHook, build_action_table, resolve_authorizer


async def host_find(controller, ctx, res):
    return res.ok("host find")


async def host_populate(controller, ctx, res):
    return res.ok("host populate")


async def host_create(controller, ctx, res):
    return res.ok("host create")


# =============================================================================
# Authorizer resolution
# =============================================================================


class TestResolveAuthorizer:
    @pytest.mark.parametrize(
        "path",
        [
            "gatedcrud.auth.authorizer:PermissionSetAuthorizer",
            "gatedcrud.auth.authorizer.PermissionSetAuthorizer",
        ],
    )
    def test_dotted_paths(self, path):
        assert resolve_authorizer(path) is PermissionSetAuthorizer

    def test_empty(self):
        assert resolve_authorizer(None) is None
        assert resolve_authorizer("") is None

    @pytest.mark.parametrize("path", ["nowhere.module:Thing", "gatedcrud.config:Settings", "justaname"])
    def test_invalid(self, path):
        with pytest.raises(ConfigurationError):
            resolve_authorizer(path)

    def test_configure_reads_settings(self, registry):
        settings = Settings(_env_file=None, default_authorizer="gatedcrud.auth.authorizer:PermissionSetAuthorizer")
        hook = GatedCrudHook(settings=settings, models=registry)
        assert hook.configure() is PermissionSetAuthorizer
        assert hook.core_authorizer is PermissionSetAuthorizer


# =============================================================================
# Action layering
# =============================================================================


class TestLayering:
    def test_table_precedence(self):
        table = build_action_table(
            {"find": "library", "create": "library"},
            host_base={"find": "base", "populate": "base"},
            host_overrides={"create": "override"},
        )
        assert dict(table) == {"find": "library", "populate": "base", "create": "override"}

    def test_table_is_frozen(self):
        table = build_action_table({"find": "library"})
        with pytest.raises(TypeError):
            table["find"] = "other"

    def test_initialize_twice_rejected(self, registry):
        hook = GatedCrudHook(models=registry)
        hook.initialize()
        with pytest.raises(ConfigurationError):
            hook.initialize()

    def test_actions_require_initialize(self, registry):
        with pytest.raises(ConfigurationError):
            GatedCrudHook(models=registry).actions

    async def test_host_base_fills_gaps_only(self, registry, sink, make_ctx):
        hook = GatedCrudHook(models=registry)
        hook.core_authorizer = PermissionSetAuthorizer
        hook.initialize(host_base={"find": host_find, "populate": host_populate})

        controller = hook.controller("widget")
        admin_ctx = make_ctx(user=Principal(id="a", groups={"admin"}))

        assert (await controller.populate(admin_ctx, sink)).body == "host populate"
        assert (await controller.find(admin_ctx, sink)).body == []
        assert hook.actions["find"] is Controller.find
        assert hook.actions["populate"] is host_populate

    async def test_host_overrides_win(self, registry, sink, make_ctx):
        hook = GatedCrudHook(models=registry)
        hook.initialize(host_overrides={"find": host_find})

        controller = hook.controller("widget")
        assert (await controller.find(make_ctx(), sink)).body == "host find"
        assert hook.actions["find"] is host_find

    async def test_subclass_actions_kept(self, registry, sink, make_ctx):
        class Custom(Controller):
            async def create(self, ctx, res):
                return res.ok("custom create")

        hook = GatedCrudHook(models=registry)
        hook.initialize(host_overrides={"create": host_create, "find": host_find})

        controller = hook.controller("widget", controller_class=Custom)
        assert isinstance(controller, Custom)
        assert (await controller.create(make_ctx(), sink)).body == "custom create"
        assert (await controller.find(make_ctx(), sink)).body == "host find"

    def test_controller_injection(self, registry, pubsub):
        hook = GatedCrudHook(models=registry, pubsub=pubsub)
        hook.core_authorizer = PermissionSetAuthorizer
        hook.initialize()

        controller = hook.controller("Widget")
        assert controller.models is registry
        assert controller.pubsub is pubsub
        assert controller.authorizer.core_authorizer.__class__ is PermissionSetAuthorizer
        assert controller.settings is hook.settings
