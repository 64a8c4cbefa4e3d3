"""
Bootstrap - wire the library into a host at startup.

The host supplies two optional action tables:

- ``host_base``: the host's own generic actions. They fill names the
  library does not define (e.g. association actions) and are otherwise
  overridden by the library.
- ``host_overrides``: the host's customized actions. They win over both.

The merged table is computed once in ``initialize`` and frozen; every
controller built through the hook afterwards sees the same layering.

Usage:
    hook = GatedCrudHook(models=registry, pubsub=InMemoryPubSub())
    hook.configure()
    hook.initialize(host_overrides={"find": my_find})
    widgets = hook.controller("widget")
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any

from gatedcrud.auth.authorizer import Authorizer
from gatedcrud.config import Settings, get_settings
from gatedcrud.controller.base import ACTIONS, BaseController, Controller
from gatedcrud.core.events import PubSub
from gatedcrud.core.registry import ModelRegistry, get_registry
from gatedcrud.errors import ConfigurationError

logger = logging.getLogger(__name__)

ActionFn = Callable[..., Any]


def resolve_authorizer(path: str | None) -> type[Authorizer] | None:
    """
    Import an authorizer class from "package.module:Class" or
    "package.module.Class". Returns None for an empty path.
    """
    if not path:
        return None

    if ":" in path:
        module_name, _, attr = path.partition(":")
    else:
        module_name, _, attr = path.rpartition(".")

    if not module_name or not attr:
        raise ConfigurationError(f"Invalid authorizer path '{path}'")

    try:
        module = importlib.import_module(module_name)
        cls = getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(f"Cannot import authorizer '{path}': {e}") from e

    if not (isinstance(cls, type) and issubclass(cls, Authorizer)):
        raise ConfigurationError(f"'{path}' is not an Authorizer class")
    return cls


def library_actions(cls: type[BaseController] = Controller) -> dict[str, ActionFn]:
    """The actions the library defines, by name."""
    return {name: getattr(cls, name) for name in ACTIONS}


def build_action_table(
    library: Mapping[str, ActionFn],
    host_base: Mapping[str, ActionFn] | None = None,
    host_overrides: Mapping[str, ActionFn] | None = None,
) -> Mapping[str, ActionFn]:
    """Merge the three layers (host base < library < host overrides) and freeze."""
    table: dict[str, ActionFn] = dict(host_base or {})
    table.update(library)
    table.update(host_overrides or {})
    return MappingProxyType(table)


class GatedCrudHook:
    """
    Startup wiring: core authorizer, action layering, controller factory.

    Args:
        settings: Settings override (defaults to ``get_settings()``)
        models: Model registry injected into every controller
        pubsub: Pub/sub collaborator, or None when live updates are unavailable
    """

    config_key = "gatedcrud"

    def __init__(
        self,
        settings: Settings | None = None,
        models: ModelRegistry | None = None,
        pubsub: PubSub | None = None,
    ):
        self.settings = settings or get_settings()
        self.models = models if models is not None else get_registry()
        self.pubsub = pubsub
        self.core_authorizer: type[Authorizer] | None = None

        self._host_base: Mapping[str, ActionFn] = MappingProxyType({})
        self._host_overrides: Mapping[str, ActionFn] = MappingProxyType({})
        self._actions: Mapping[str, ActionFn] | None = None
        self._classes: dict[type, type] = {}

    def configure(self) -> type[Authorizer] | None:
        """Resolve the configured default authorizer class."""
        self.core_authorizer = resolve_authorizer(self.settings.default_authorizer)
        if self.core_authorizer is None:
            logger.info("No default authorizer configured")
        else:
            logger.info(f"Default authorizer: {self.core_authorizer.__name__}")
        return self.core_authorizer

    def initialize(
        self,
        host_base: Mapping[str, ActionFn] | None = None,
        host_overrides: Mapping[str, ActionFn] | None = None,
    ) -> type[Controller]:
        """Compute and freeze the action table; returns the layered Controller class."""
        if self._actions is not None:
            raise ConfigurationError("Hook is already initialized")

        self._host_base = MappingProxyType(dict(host_base or {}))
        self._host_overrides = MappingProxyType(dict(host_overrides or {}))
        self._actions = build_action_table(library_actions(), self._host_base, self._host_overrides)

        logger.info(f"Initialized controller actions: {sorted(self._actions)}")
        return self.controller_class(Controller)

    @property
    def is_initialized(self) -> bool:
        return self._actions is not None

    @property
    def actions(self) -> Mapping[str, ActionFn]:
        """The frozen action table."""
        if self._actions is None:
            raise ConfigurationError("Hook is not initialized")
        return self._actions

    def controller_class(self, cls: type[BaseController]) -> type[BaseController]:
        """
        Layer host actions onto ``cls``.

        Host base actions fill names ``cls`` lacks. Host overrides replace
        actions ``cls`` inherits unchanged from the library; an action the
        subclass defines itself is kept.
        """
        if not self.is_initialized:
            return cls
        if cls in self._classes:
            return self._classes[cls]

        namespace: dict[str, Any] = {}
        for name, fn in self._host_base.items():
            if not hasattr(cls, name):
                namespace[name] = fn
        for name, fn in self._host_overrides.items():
            if getattr(cls, name, None) is getattr(BaseController, name, None):
                namespace[name] = fn

        layered = type(cls.__name__, (cls,), namespace) if namespace else cls
        self._classes[cls] = layered
        return layered

    def controller(
        self,
        type: Any,
        model_name: str | None = None,
        controller_class: type[BaseController] = Controller,
    ) -> BaseController:
        """Build a controller with this hook's authorizer, models and pubsub injected."""
        cls = self.controller_class(controller_class)
        return cls(
            type,
            model_name,
            models=self.models,
            pubsub=self.pubsub,
            core_authorizer=self.core_authorizer,
            settings=self.settings,
        )
