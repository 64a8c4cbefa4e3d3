"""
Request context - who is calling, with what parameters.

This is the lightweight object passed through every action. The pipeline
only inspects it for an authenticated principal; the rest is carried for
hooks, parameter parsing and the pub/sub collaborator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Principal:
    """An authenticated caller."""

    id: str
    groups: set[str] = field(default_factory=set)
    permissions: set[str] = field(default_factory=set)
    attributes: dict[str, Any] = field(default_factory=dict)

    def in_group(self, group: str) -> bool:
        return group in self.groups

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions


@dataclass
class RequestContext:
    """
    Per-request carrier for caller identity and raw parameters.

    Usage:
        ctx = RequestContext(user=Principal(id="u1"), params={"id": "7"})
        ctx.param("id")  # "7"
    """

    # Who
    user: Principal | None = None

    # Raw parameters (path + query + body, merged)
    params: dict[str, Any] = field(default_factory=dict)

    # Route options (model, blacklist, mirror, auto_watch, populate, limit, sort)
    options: dict[str, Any] = field(default_factory=dict)

    # Transport
    is_socket: bool = False
    socket_id: str | None = None

    # Extra context (request-scoped data for hooks)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def param(self, name: str, default: Any = None) -> Any:
        """Get a single request parameter."""
        return self.params.get(name, default)

    def option(self, name: str, default: Any = None) -> Any:
        """Get a single route option."""
        return self.options.get(name, default)

    @classmethod
    def anonymous(cls, **kwargs: Any) -> RequestContext:
        """Create an anonymous context (no user)."""
        return cls(user=None, **kwargs)
