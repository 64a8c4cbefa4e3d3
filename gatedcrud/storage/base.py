"""
Store capability consumed by the controller actions.

All persistence goes through these interfaces. Actions only build
queries, create, update and destroy; they never inspect a record beyond
handing it to ``export``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, ConfigDict


# =============================================================================
# Errors
# =============================================================================


class StoreError(Exception):
    """Base class for store failures."""

    status: int = 500


class RecordValidationError(StoreError):
    """The store rejected a create/update payload."""

    status = 400

    def __init__(self, model: str, details: list[dict[str, Any]] | None = None):
        self.model = model
        self.details = details or []
        super().__init__(f"Invalid attributes for {model}")


class UnknownModelError(StoreError):
    """No model is registered under the requested identity."""

    def __init__(self, identity: str | None):
        self.identity = identity
        super().__init__(f"Model '{identity}' not found")


# =============================================================================
# Records
# =============================================================================


class Record(BaseModel):
    """A store-owned entity identified by its primary key."""

    model_config = ConfigDict(extra="allow")

    id: Any = None

    def to_json(self) -> dict[str, Any]:
        """Canonical serialization."""
        return self.model_dump(mode="json")


# =============================================================================
# Query builder
# =============================================================================


class Query(ABC):
    """
    Chainable query over one model.

    Usage:
        records = await model.find().where({"color": "red"}).limit(10).exec()
    """

    @abstractmethod
    def where(self, criteria: dict[str, Any]) -> Query:
        pass

    @abstractmethod
    def limit(self, limit: int) -> Query:
        pass

    @abstractmethod
    def skip(self, skip: int) -> Query:
        pass

    @abstractmethod
    def sort(self, sort: str | dict[str, Any]) -> Query:
        pass

    @abstractmethod
    def populate(self, association: str) -> Query:
        pass

    @abstractmethod
    async def exec(self) -> Any:
        """Run the query; a list for ``find``, a record or None for ``find_one``."""
        pass


# =============================================================================
# Model
# =============================================================================


class Model(ABC):
    """
    Storage for one record kind.

    ``global_id`` is the display name used in error messages,
    ``identity`` the lower-case lookup name.
    """

    identity: str
    global_id: str
    primary_key: str = "id"
    associations: dict[str, str]

    @abstractmethod
    def find(self) -> Query:
        pass

    @abstractmethod
    def find_one(self, pk: Any) -> Query:
        pass

    @abstractmethod
    async def create(self, values: dict[str, Any]) -> Record:
        pass

    @abstractmethod
    async def update(self, pk: Any, values: dict[str, Any]) -> list[Record]:
        """Partial update; returns the updated records."""
        pass

    @abstractmethod
    async def destroy(self, pk: Any) -> list[Record]:
        """Delete by primary key; returns the destroyed records."""
        pass

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(identity={self.identity})>"
