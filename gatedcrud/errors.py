"""
Exceptions raised by the authorization pipeline.

Storage-level errors live in ``gatedcrud.storage.base``.
"""

from __future__ import annotations


class GatedCrudError(Exception):
    """Base class for library errors."""

    status: int = 500


class AuthorizerNotConfigured(GatedCrudError):
    """Raised when a DefaultAuthorizer has no core authorizer class to delegate to."""

    def __init__(self, type_name: str | None = None):
        self.type_name = type_name
        super().__init__(
            f"No default authorizer configured for '{type_name}'; "
            "set GATEDCRUD_DEFAULT_AUTHORIZER or pass core_authorizer explicitly"
        )


class MissingPrimaryKey(GatedCrudError):
    """Raised when an action requires an `id` parameter and none was supplied."""

    status = 400

    def __init__(self):
        super().__init__("Missing required `id` parameter")


class ConfigurationError(GatedCrudError):
    """Raised when hook configuration cannot be resolved."""
