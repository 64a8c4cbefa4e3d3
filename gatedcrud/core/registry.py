"""
Registry for models.

Controllers resolve their model by identity through a registry rather
than holding a store directly, so one route option (``model``) can
redirect an action to another record kind.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from gatedcrud.storage.base import UnknownModelError

if TYPE_CHECKING:
    from gatedcrud.storage.base import Model


class RegistryError(Exception):
    """Raised when there's an error with the registry."""
    pass


class ModelRegistry:
    """
    Central registry of models by identity.

    Identities are matched case-insensitively.
    """

    def __init__(self):
        self._models: dict[str, Model] = {}

    def register(self, model: Model) -> Model:
        """Register a model by its identity."""
        identity = model.identity.lower()
        if identity in self._models:
            raise RegistryError(f"Model '{identity}' is already registered")
        self._models[identity] = model
        return model

    def get(self, identity: str | None) -> Model:
        """Get a model by identity."""
        key = identity.lower() if isinstance(identity, str) else identity
        if key not in self._models:
            raise UnknownModelError(identity)
        return self._models[key]

    def __contains__(self, identity: str) -> bool:
        return identity.lower() in self._models

    def list_models(self) -> list[str]:
        """List all registered model identities."""
        return list(self._models.keys())


# Singleton registry for the application
_default_registry: ModelRegistry | None = None


def get_registry() -> ModelRegistry:
    """Get the default registry instance."""
    global _default_registry
    if _default_registry is None:
        _default_registry = ModelRegistry()
    return _default_registry


def reset_registry() -> None:
    """Reset the default registry (useful for testing)."""
    global _default_registry
    _default_registry = None
