"""
Core value types shared by authorizers, controllers and actions.

These are small immutable-ish values created either once per bound
resource type (ResourceType) or fresh per request (AuthorizationDecision,
QueryConfiguration).
"""

from __future__ import annotations

from collections.abc import Awaitable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel

from gatedcrud.core.utils import id_for


# =============================================================================
# Enums
# =============================================================================


class Action(str, Enum):
    """Actions an authorizer can be asked about."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


class Scenario(str, Enum):
    """Query configuration scenarios, one per controller action."""

    CREATE = "create"
    FIND = "find"
    FIND_ONE = "findOne"
    UPDATE = "update"
    DESTROY = "destroy"


# =============================================================================
# Resource type
# =============================================================================


@dataclass(frozen=True)
class ResourceType:
    """
    The record kind an authorizer or controller is bound to.

    ``producer`` optionally scopes the type to one owning entity, e.g.
    ``ResourceType.parse({"item": producer_x})`` means "items owned by
    producer X". Pass None for any type.
    """

    type: str | None = None
    producer: Any = None

    @classmethod
    def parse(cls, value: Any) -> ResourceType:
        """
        Parse a type string, a single-entry ``{type: producer}`` mapping,
        or an existing ResourceType.
        """
        if isinstance(value, ResourceType):
            return value
        if not value:
            return cls()
        if isinstance(value, Mapping):
            parsed = cls()
            for type_name, producer in value.items():
                parsed = cls(type=type_name, producer=id_for(producer))
            return parsed
        return cls(type=value)

    @property
    def model_name(self) -> str | None:
        if isinstance(self.type, str):
            return self.type.lower()
        return self.type

    @property
    def is_scoped(self) -> bool:
        return self.producer is not None


def is_type_spec(value: Any) -> bool:
    """True for a type string or a single-entry producer mapping."""
    return isinstance(value, str) or (isinstance(value, Mapping) and len(value) == 1)


# =============================================================================
# Authorization decision
# =============================================================================


class DecisionOutcome(str, Enum):
    ALLOWED = "allowed"
    DENIED = "denied"
    FAILED = "failed"


@dataclass(frozen=True)
class AuthorizationDecision:
    """Tri-state result of an authorization check."""

    outcome: DecisionOutcome
    error: BaseException | None = None

    @classmethod
    def allowed(cls) -> AuthorizationDecision:
        return cls(DecisionOutcome.ALLOWED)

    @classmethod
    def denied(cls) -> AuthorizationDecision:
        return cls(DecisionOutcome.DENIED)

    @classmethod
    def failed(cls, error: BaseException) -> AuthorizationDecision:
        return cls(DecisionOutcome.FAILED, error)

    @property
    def is_allowed(self) -> bool:
        return self.outcome is DecisionOutcome.ALLOWED

    @property
    def is_denied(self) -> bool:
        return self.outcome is DecisionOutcome.DENIED

    @property
    def is_failed(self) -> bool:
        return self.outcome is DecisionOutcome.FAILED


async def decide(check: Awaitable[bool]) -> AuthorizationDecision:
    """Await an authorization gate and capture its outcome as a decision."""
    try:
        value = await check
    except Exception as e:
        return AuthorizationDecision.failed(e)
    return AuthorizationDecision.allowed() if value else AuthorizationDecision.denied()


# =============================================================================
# Query configuration
# =============================================================================


class QueryConfiguration(BaseModel):
    """
    Resolved per-call query options.

    ``True`` for criteria/limit/skip/sort/populate means "derive from the
    request"; a concrete value (sort string, populate list) is used as-is;
    a falsy value disables the clause.
    """

    model_config = {"extra": "allow", "arbitrary_types_allowed": True}

    criteria: bool = True
    where: dict[str, Any] | None = None
    limit: Any = True
    skip: Any = True
    sort: Any = True
    populate: Any = True
    blacklist: list[str] | None = None

    @classmethod
    def resolve(
        cls,
        overrides: Mapping[str, Any] | None = None,
        **defaults: Any,
    ) -> QueryConfiguration:
        """Merge controller overrides onto per-action defaults."""
        return cls(**{**defaults, **dict(overrides or {})})
