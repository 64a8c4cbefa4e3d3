"""
Tests for the controller actions.

Core principle: no store mutation happens before an authorization
decision, and the first failure decides the response.
"""

import asyncio

import pytest

from gatedcrud.auth.authorizer import PermissionSetAuthorizer
from gatedcrud.auth.context import Principal
from gatedcrud.config import Settings
from gatedcrud.controller.base import Controller
from gatedcrud.storage.base import StoreError

from tests.conftest import ScriptedAuthorizer


async def seed(model, *rows):
    return [await model.create(row) for row in rows]


# =============================================================================
# Create
# =============================================================================


class TestCreate:
    async def test_creates_and_exports(self, controller, widgets, sink, make_ctx):
        result = await controller.create(make_ctx(name="Widget"), sink)

        assert widgets.created == [{"name": "Widget"}]
        assert result.status == 201
        assert result.body["name"] == "Widget"
        assert result.body["id"] == 1

    async def test_denied_is_forbidden(self, controller, authorizer, widgets, sink, make_ctx):
        authorizer.allow = False
        result = await controller.create(make_ctx(name="Widget"), sink)

        assert result.status == 403
        assert "Widget" in result.body["error"]
        assert widgets.created == []

    async def test_authorizer_error_is_server_error(self, controller, authorizer, widgets, sink, make_ctx):
        authorizer.error_ids.add(None)
        result = await controller.create(make_ctx(name="Widget"), sink)

        assert result.status == 500
        assert widgets.created == []

    async def test_before_create_none_cancels(self, registry, widgets, sink, make_ctx):
        class Cancelling(Controller):
            async def before_create(self, ctx, payload):
                return None

        controller = Cancelling(ScriptedAuthorizer(), models=registry)
        result = await controller.create(make_ctx(name="Widget"), sink)

        assert result.status == 200
        assert result.body is None
        assert widgets.created == []

    async def test_before_create_rewrites_payload(self, registry, widgets, sink, make_ctx):
        class Stamping(Controller):
            async def before_create(self, ctx, payload):
                return {**payload, "color": "red"}

        controller = Stamping(ScriptedAuthorizer(), models=registry)
        result = await controller.create(make_ctx(name="Widget"), sink)

        assert result.status == 201
        assert result.body["color"] == "red"

    async def test_validation_failure_is_negotiated(self, controller, sink, make_ctx):
        result = await controller.create(make_ctx(name=""), sink)

        assert result.status == 400
        assert result.body["details"][0]["attribute"] == "name"

    async def test_blacklist_excluded_from_payload(self, registry, widgets, sink, make_ctx):
        class Guarded(Controller):
            def get_query_configuration(self, ctx, scenario):
                return {"blacklist": ["secret"]} if scenario == "create" else {}

        controller = Guarded(ScriptedAuthorizer(), models=registry)
        await controller.create(make_ctx(name="Widget", secret="s3cret", callback="jsonp"), sink)

        assert widgets.created == [{"name": "Widget"}]

    async def test_after_create_error_is_server_error(self, registry, sink, make_ctx):
        class Failing(Controller):
            async def after_create(self, ctx, record):
                raise RuntimeError("boom")

        controller = Failing(ScriptedAuthorizer(), models=registry)
        result = await controller.create(make_ctx(name="Widget"), sink)
        assert result.status == 500

    async def test_export_redaction(self, registry, sink, make_ctx):
        class Redacting(Controller):
            async def export(self, ctx, record):
                data = record.to_json()
                data.pop("secret", None)
                return data

        controller = Redacting(ScriptedAuthorizer(), models=registry)
        result = await controller.create(make_ctx(name="Widget", secret="s3cret"), sink)
        assert "secret" not in result.body

    async def test_publishes_create(self, controller, pubsub, sink, make_ctx):
        await controller.create(make_ctx(name="Widget"), sink)
        events = pubsub.get_history("widget.created")
        assert len(events) == 1
        assert events[0].data["name"] == "Widget"

    async def test_unknown_model_is_server_error(self, registry, sink, make_ctx):
        controller = Controller(ScriptedAuthorizer("nothing"), models=registry)
        result = await controller.create(make_ctx(name="x"), sink)
        assert result.status == 500


# =============================================================================
# FindOne
# =============================================================================


class TestFindOne:
    async def test_reads_record(self, controller, widgets, sink, make_ctx):
        await seed(widgets, {"id": 7, "name": "Seven"})
        result = await controller.find_one(make_ctx(id="7"), sink)

        assert result.status == 200
        assert result.body["name"] == "Seven"

    async def test_missing_pk_is_client_error(self, controller, sink, make_ctx):
        result = await controller.find_one(make_ctx(), sink)
        assert result.status == 400

    async def test_not_found(self, controller, authorizer, sink, make_ctx):
        result = await controller.find_one(make_ctx(id="404"), sink)
        assert result.status == 404
        assert authorizer.calls == []

    async def test_authenticated_denied_is_forbidden(self, controller, authorizer, widgets, sink, make_ctx):
        await seed(widgets, {"id": 7, "name": "Seven"})
        authorizer.deny_ids.add(7)

        result = await controller.find_one(make_ctx(id=7), sink)

        assert result.status == 403
        assert "Widget" in result.body["error"]

    async def test_anonymous_denied_is_not_found(self, controller, authorizer, widgets, sink, make_ctx):
        await seed(widgets, {"id": 7, "name": "Seven"})
        authorizer.deny_ids.add(7)

        result = await controller.find_one(make_ctx(user=None, id=7), sink)

        assert result.status == 404

    async def test_anonymous_is_not_found_with_reference_policy(self, permission_controller, widgets, sink, make_ctx):
        await seed(widgets, {"id": 7, "name": "Seven"})

        anonymous = await permission_controller.find_one(make_ctx(user=None, id=7), sink)
        denied = await permission_controller.find_one(make_ctx(user=Principal(id="u"), id=7), sink)

        assert anonymous.status == 404
        assert denied.status == 403

    async def test_authorizer_error_is_server_error(self, controller, authorizer, widgets, sink, make_ctx):
        await seed(widgets, {"id": 7, "name": "Seven"})
        authorizer.error_ids.add(7)

        result = await controller.find_one(make_ctx(id=7), sink)
        assert result.status == 500

    async def test_before_read_none_is_ok_null(self, registry, widgets, sink, make_ctx):
        class Hiding(Controller):
            async def before_read(self, ctx, record):
                return None

        await seed(widgets, {"id": 7, "name": "Seven"})
        controller = Hiding(ScriptedAuthorizer(), models=registry)
        result = await controller.find_one(make_ctx(id=7), sink)

        assert result.status == 200
        assert result.body is None

    async def test_populates_associations(self, controller, registry, widgets, sink, make_ctx):
        await registry.get("maker").create({"id": 1, "name": "Acme"})
        await seed(widgets, {"id": 7, "name": "Seven", "maker": 1})

        result = await controller.find_one(make_ctx(id=7), sink)
        assert result.body["maker"] == {"id": 1, "name": "Acme"}

    async def test_populate_disabled(self, registry, widgets, sink, make_ctx):
        class Flat(Controller):
            def get_query_configuration(self, ctx, scenario):
                return {"populate": False}

        await registry.get("maker").create({"id": 1, "name": "Acme"})
        await seed(widgets, {"id": 7, "name": "Seven", "maker": 1})
        controller = Flat(ScriptedAuthorizer(), models=registry)

        result = await controller.find_one(make_ctx(id=7), sink)
        assert result.body["maker"] == 1

    async def test_socket_caller_is_subscribed(self, controller, pubsub, widgets, sink, make_ctx):
        await seed(widgets, {"id": 7, "name": "Seven"})
        ctx = make_ctx(id=7)
        ctx.is_socket = True
        ctx.socket_id = "sock_1"

        await controller.find_one(ctx, sink)
        assert pubsub.subscribers(widgets, 7) == {"sock_1"}

    async def test_round_trip_with_create(self, controller, sink, make_ctx):
        created = await controller.create(make_ctx(name="Widget", color="blue"), sink)
        read = await controller.find_one(make_ctx(id=created.body["id"]), sink)

        assert read.body == created.body


# =============================================================================
# Find (many)
# =============================================================================


class TestFind:
    async def test_lists_in_store_order(self, controller, widgets, sink, make_ctx):
        await seed(widgets, {"name": "a"}, {"name": "b"}, {"name": "c"})
        result = await controller.find(make_ctx(), sink)

        assert result.status == 200
        assert [w["name"] for w in result.body] == ["a", "b", "c"]

    async def test_excludes_denied_and_errored(self, controller, authorizer, widgets, sink, make_ctx):
        await seed(widgets, *({"name": n} for n in "abcde"))
        authorizer.deny_ids.add(2)
        authorizer.error_ids.add(4)

        result = await controller.find(make_ctx(), sink)

        assert result.status == 200
        assert [w["name"] for w in result.body] == ["a", "c", "e"]

    async def test_uses_can_list(self, registry, widgets, sink, make_ctx):
        class ListOwnOnly(ScriptedAuthorizer):
            async def can_list(self, ctx, record):
                return record.name.startswith("mine")

        await seed(widgets, {"name": "mine-1"}, {"name": "theirs"}, {"name": "mine-2"})
        controller = Controller(ListOwnOnly(), models=registry)

        result = await controller.find(make_ctx(), sink)
        assert [w["name"] for w in result.body] == ["mine-1", "mine-2"]

    async def test_criteria_from_params(self, controller, widgets, sink, make_ctx):
        await seed(widgets, {"name": "a", "color": "red"}, {"name": "b", "color": "blue"})
        result = await controller.find(make_ctx(color="red"), sink)
        assert [w["name"] for w in result.body] == ["a"]

    async def test_where_param(self, controller, widgets, sink, make_ctx):
        await seed(widgets, {"name": "a"}, {"name": "b"}, {"name": "c"})
        result = await controller.find(make_ctx(where='{"name": {"!": "b"}}'), sink)
        assert [w["name"] for w in result.body] == ["a", "c"]

    async def test_limit_skip_sort(self, controller, widgets, sink, make_ctx):
        await seed(widgets, *({"name": n} for n in "dbeac"))
        result = await controller.find(make_ctx(sort="name DESC", skip="1", limit="2"), sink)
        assert [w["name"] for w in result.body] == ["d", "c"]

    async def test_configured_where_and_sort(self, registry, widgets, sink, make_ctx):
        class RedOnly(Controller):
            def get_query_configuration(self, ctx, scenario):
                return {"where": {"color": "red"}, "sort": "name ASC"}

        await seed(widgets, {"name": "z", "color": "red"}, {"name": "y", "color": "blue"}, {"name": "x", "color": "red"})
        controller = RedOnly(ScriptedAuthorizer(), models=registry)

        result = await controller.find(make_ctx(), sink)
        assert [w["name"] for w in result.body] == ["x", "z"]

    async def test_pk_delegates_to_find_one(self, controller, widgets, sink, make_ctx):
        await seed(widgets, {"id": 3, "name": "three"})
        result = await controller.find(make_ctx(id=3), sink)
        assert result.body["name"] == "three"

    async def test_export_failure_fails_everything(self, registry, widgets, sink, make_ctx):
        class Failing(Controller):
            async def export(self, ctx, record):
                if record.name == "b":
                    raise RuntimeError("cannot export")
                return record.to_json()

        await seed(widgets, {"name": "a"}, {"name": "b"})
        controller = Failing(ScriptedAuthorizer(), models=registry)

        result = await controller.find(make_ctx(), sink)
        assert result.status == 500

    async def test_socket_subscribes_to_visible_only(self, controller, authorizer, pubsub, widgets, sink, make_ctx):
        await seed(widgets, {"name": "a"}, {"name": "b"})
        authorizer.deny_ids.add(2)
        ctx = make_ctx()
        ctx.is_socket = True
        ctx.socket_id = "sock_1"

        await controller.find(ctx, sink)

        assert pubsub.subscribers(widgets, 1) == {"sock_1"}
        assert pubsub.subscribers(widgets, 2) == set()
        assert pubsub.watchers(widgets) == {"sock_1"}


# =============================================================================
# Update
# =============================================================================


class TestUpdate:
    async def test_updates(self, controller, widgets, sink, make_ctx):
        await seed(widgets, {"id": 5, "name": "old"})
        result = await controller.update(make_ctx(id="5", name="new"), sink)

        assert result.status == 200
        assert result.body["name"] == "new"
        assert (await widgets.find_one(5).exec()).name == "new"

    async def test_denied(self, controller, authorizer, widgets, sink, make_ctx):
        await seed(widgets, {"id": 5, "name": "old"})
        authorizer.deny_ids.add(5)

        result = await controller.update(make_ctx(id=5, name="new"), sink)

        assert result.status == 403
        assert (await widgets.find_one(5).exec()).name == "old"

    async def test_before_update_none_cancels(self, registry, widgets, sink, make_ctx):
        class Frozen(Controller):
            async def before_update(self, ctx, payload, record):
                return None

        await seed(widgets, {"id": 5, "name": "old"})
        controller = Frozen(ScriptedAuthorizer(), models=registry)
        result = await controller.update(make_ctx(id=5, name="new"), sink)

        assert result.status == 200 and result.body is None
        assert (await widgets.find_one(5).exec()).name == "old"

    async def test_not_found(self, controller, sink, make_ctx):
        result = await controller.update(make_ctx(id=99, name="x"), sink)
        assert result.status == 404

    async def test_validation(self, controller, widgets, sink, make_ctx):
        await seed(widgets, {"id": 5, "name": "old"})
        result = await controller.update(make_ctx(id=5, name=""), sink)
        assert result.status == 400

    async def test_publishes_update_to_subscribers(self, controller, pubsub, widgets, sink, make_ctx):
        await seed(widgets, {"id": 5, "name": "old"})
        watcher = make_ctx()
        watcher.socket_id = "sock_w"
        pubsub.subscribe(watcher, widgets, 5)

        await controller.update(make_ctx(id=5, name="new"), sink)

        [event] = pubsub.inbox("sock_w")
        assert event.verb == "updated"
        assert event.data == {"name": "new"}
        assert event.previous["name"] == "old"


# =============================================================================
# Destroy
# =============================================================================


class TestDestroy:
    async def test_destroys(self, controller, widgets, sink, make_ctx):
        await seed(widgets, {"id": 42, "name": "doomed"})
        result = await controller.destroy(make_ctx(id="42"), sink)

        assert result.status == 200
        assert result.body["name"] == "doomed"
        assert await widgets.find_one(42).exec() is None

    async def test_missing_record(self, controller, authorizer, widgets, sink, make_ctx):
        result = await controller.destroy(make_ctx(id=42), sink)

        assert result.status == 404
        assert authorizer.calls == []
        assert widgets.destroyed == []

    async def test_missing_pk(self, controller, sink, make_ctx):
        result = await controller.destroy(make_ctx(), sink)
        assert result.status == 400

    async def test_denied(self, controller, authorizer, widgets, sink, make_ctx):
        await seed(widgets, {"id": 42, "name": "kept"})
        authorizer.deny_ids.add(42)

        result = await controller.destroy(make_ctx(id=42), sink)

        assert result.status == 403
        assert "Widget" in result.body["error"]
        assert widgets.destroyed == []

    async def test_authorizer_error(self, controller, authorizer, widgets, sink, make_ctx):
        await seed(widgets, {"id": 42, "name": "kept"})
        authorizer.error_ids.add(42)

        result = await controller.destroy(make_ctx(id=42), sink)

        assert result.status == 500
        assert widgets.destroyed == []

    async def test_before_delete_none_cancels(self, registry, widgets, sink, make_ctx):
        class Keeper(Controller):
            async def before_delete(self, ctx, record):
                return None

        await seed(widgets, {"id": 42, "name": "kept"})
        controller = Keeper(ScriptedAuthorizer(), models=registry)
        result = await controller.destroy(make_ctx(id=42), sink)

        assert result.status == 200 and result.body is None
        assert widgets.destroyed == []

    async def test_notifies_before_after_delete(self, registry, pubsub, widgets, sink, make_ctx):
        seen = []

        class Auditing(Controller):
            async def after_delete(self, ctx, record):
                seen.append(len(pubsub.get_history("widget.destroyed")))

        await seed(widgets, {"id": 42, "name": "doomed"})
        controller = Auditing(ScriptedAuthorizer(), models=registry, pubsub=pubsub)
        await controller.destroy(make_ctx(id=42), sink)

        assert seen == [1]

    async def test_socket_caller_unsubscribed(self, controller, pubsub, widgets, sink, make_ctx):
        await seed(widgets, {"id": 42, "name": "doomed"})
        ctx = make_ctx(id=42)
        ctx.is_socket = True
        ctx.socket_id = "sock_1"
        pubsub.subscribe(ctx, widgets, 42)

        await controller.destroy(ctx, sink)
        assert pubsub.subscribers(widgets, 42) == set()

    async def test_store_failure_is_negotiated(self, registry, widgets, sink, make_ctx, monkeypatch):
        await seed(widgets, {"id": 42, "name": "doomed"})

        async def broken(pk):
            raise StoreError("disk on fire")

        monkeypatch.setattr(widgets, "destroy", broken)
        controller = Controller(ScriptedAuthorizer(), models=registry)

        result = await controller.destroy(make_ctx(id=42), sink)
        assert result.status == 500


# =============================================================================
# Reference policy end to end
# =============================================================================


class TestReferencePolicy:
    @pytest.mark.parametrize(
        "permissions,status",
        [({"widget.create"}, 201), ({"widget.read"}, 403), (set(), 403)],
    )
    async def test_create_permissions(self, registry, sink, make_ctx, permissions, status):
        controller = Controller("Widget", models=registry, core_authorizer=PermissionSetAuthorizer)
        result = await controller.create(make_ctx(user=Principal(id="u", permissions=permissions), name="W"), sink)
        assert result.status == status

    async def test_unconfigured_default_authorizer_is_server_error(self, registry, sink, make_ctx):
        controller = Controller("Widget", models=registry)
        result = await controller.create(make_ctx(name="W"), sink)
        assert result.status == 500


# =============================================================================
# Query configuration
# =============================================================================


ALL_ACTIONS = ["create", "find", "find_one", "update", "destroy"]


class TestQueryConfigurationErrors:
    @pytest.mark.parametrize("action", ALL_ACTIONS)
    async def test_raising_configuration_is_server_error(self, registry, widgets, sink, make_ctx, action):
        class Broken(Controller):
            def get_query_configuration(self, ctx, scenario):
                raise RuntimeError("config backend down")

        await seed(widgets, {"id": 1, "name": "one"})
        controller = Broken(ScriptedAuthorizer(), models=registry)

        result = await getattr(controller, action)(make_ctx(id=1, name="W"), sink)

        assert result.status == 500
        assert widgets.created == [{"id": 1, "name": "one"}]
        assert widgets.destroyed == []

    @pytest.mark.parametrize("action", ALL_ACTIONS)
    async def test_invalid_configuration_is_server_error(self, registry, widgets, sink, make_ctx, action):
        class Misconfigured(Controller):
            def get_query_configuration(self, ctx, scenario):
                return {"blacklist": {"not": "a list"}}

        await seed(widgets, {"id": 1, "name": "one"})
        controller = Misconfigured(ScriptedAuthorizer(), models=registry)

        result = await getattr(controller, action)(make_ctx(id=1, name="W"), sink)

        assert result.status == 500
        assert (await widgets.find_one(1).exec()).name == "one"

    async def test_route_blacklist_is_merged(self, registry, widgets, sink, make_ctx):
        class NoColor(Controller):
            def get_query_configuration(self, ctx, scenario):
                return {"blacklist": ["color"]}

        controller = NoColor(ScriptedAuthorizer(), models=registry)
        ctx = make_ctx(name="W", color="red", secret="s3", options={"blacklist": ["secret"]})

        result = await controller.create(ctx, sink)

        assert result.status == 201
        assert widgets.created == [{"name": "W"}]


# =============================================================================
# Injected settings
# =============================================================================


class TestInjectedSettings:
    @pytest.mark.parametrize("debug", [True, False])
    async def test_server_error_body_follows_debug(self, registry, sink, make_ctx, debug):
        settings = Settings(_env_file=None, debug=debug)
        controller = Controller("Widget", models=registry, settings=settings)

        result = await controller.create(make_ctx(name="W"), sink)

        assert result.status == 500
        if debug:
            assert result.body["type"] == "AuthorizerNotConfigured"
        else:
            assert result.body is None

    async def test_default_limit(self, registry, widgets, sink, make_ctx):
        await seed(widgets, *({"name": n} for n in "abcde"))
        settings = Settings(_env_file=None, default_limit=2)
        controller = Controller(ScriptedAuthorizer(), models=registry, settings=settings)

        result = await controller.find(make_ctx(), sink)
        assert [w["name"] for w in result.body] == ["a", "b"]

    async def test_admin_group(self, registry, sink, make_ctx):
        settings = Settings(_env_file=None, admin_group="operators")
        controller = Controller(
            "Widget",
            models=registry,
            core_authorizer=PermissionSetAuthorizer,
            settings=settings,
        )

        operator = Principal(id="op", groups={"operators"})
        admin = Principal(id="ad", groups={"admin"})

        assert (await controller.create(make_ctx(user=operator, name="W"), sink)).status == 201
        assert (await controller.create(make_ctx(user=admin, name="W"), sink)).status == 403


# =============================================================================
# Fan-out
# =============================================================================


class InFlight:
    """Tracks how many calls overlap."""

    def __init__(self):
        self.current = 0
        self.peak = 0

    async def run(self, delay=0.01):
        self.current += 1
        self.peak = max(self.peak, self.current)
        try:
            await asyncio.sleep(delay)
        finally:
            self.current -= 1


class TestFanOut:
    async def test_checks_and_exports_run_concurrently(self, registry, widgets, sink, make_ctx):
        checks = InFlight()
        exports = InFlight()

        class SlowAuthorizer(ScriptedAuthorizer):
            async def authorize_for(self, ctx, record, action):
                await checks.run()
                return True

        class SlowExport(Controller):
            async def export(self, ctx, record):
                await exports.run()
                return record.to_json()

        await seed(widgets, *({"name": n} for n in "abcd"))
        controller = SlowExport(SlowAuthorizer(), models=registry)

        result = await controller.find(make_ctx(), sink)

        assert [w["name"] for w in result.body] == ["a", "b", "c", "d"]
        assert checks.peak == 4
        assert exports.peak == 4

    async def test_failed_export_cancels_siblings(self, registry, widgets, sink, make_ctx):
        finished = []
        cancelled = []

        class OneFails(Controller):
            async def export(self, ctx, record):
                if record.name == "b":
                    raise RuntimeError("cannot export")
                try:
                    await asyncio.sleep(1)
                except asyncio.CancelledError:
                    cancelled.append(record.name)
                    raise
                finished.append(record.name)
                return record.to_json()

        await seed(widgets, {"name": "a"}, {"name": "b"}, {"name": "c"})
        controller = OneFails(ScriptedAuthorizer(), models=registry)

        result = await controller.find(make_ctx(), sink)

        assert result.status == 500
        assert sorted(cancelled) == ["a", "c"]
        assert finished == []
