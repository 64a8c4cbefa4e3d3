"""
In-memory store implementation.

Works without any external services. Suitable for development, tests
and single-process deployments.
"""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ValidationError

from gatedcrud.storage.base import Model, Query, Record, RecordValidationError

if TYPE_CHECKING:
    from gatedcrud.core.registry import ModelRegistry


# =============================================================================
# Criteria / sort helpers
# =============================================================================


def _loose_equal(actual: Any, expected: Any) -> bool:
    if actual == expected:
        return True
    # request params arrive as strings
    if isinstance(actual, str) != isinstance(expected, str) and actual is not None and expected is not None:
        return str(actual) == str(expected)
    return False


def _compare(actual: Any, op: str, operand: Any) -> bool:
    if op in ("!", "not"):
        if isinstance(operand, list):
            return not any(_loose_equal(actual, o) for o in operand)
        return not _loose_equal(actual, operand)
    if op == "contains":
        return actual is not None and str(operand).lower() in str(actual).lower()
    if op == "startsWith":
        return actual is not None and str(actual).lower().startswith(str(operand).lower())
    if op == "endsWith":
        return actual is not None and str(actual).lower().endswith(str(operand).lower())

    if actual is None:
        return False
    if isinstance(operand, str) and not isinstance(actual, str):
        try:
            operand = type(actual)(operand)
        except (TypeError, ValueError):
            return False
    try:
        if op == "<":
            return actual < operand
        if op == "<=":
            return actual <= operand
        if op == ">":
            return actual > operand
        if op == ">=":
            return actual >= operand
    except TypeError:
        return False
    raise ValueError(f"Unknown criteria operator: {op}")


def matches(row: dict[str, Any], criteria: dict[str, Any]) -> bool:
    """Check a stored row against query criteria."""
    for key, expected in criteria.items():
        if key == "or":
            if not any(matches(row, sub) for sub in expected):
                return False
            continue

        actual = row.get(key)
        if isinstance(expected, list):
            if not any(_loose_equal(actual, e) for e in expected):
                return False
        elif isinstance(expected, dict):
            if not all(_compare(actual, op, operand) for op, operand in expected.items()):
                return False
        elif not _loose_equal(actual, expected):
            return False
    return True


def parse_sort(sort: str | dict[str, Any] | None) -> list[tuple[str, bool]]:
    """
    Parse a sort clause into ``(attribute, descending)`` pairs.

    Accepts "name ASC, age DESC" or {"name": 1, "age": -1} / {"name": "desc"}.
    """
    if not sort:
        return []

    keys: list[tuple[str, bool]] = []
    if isinstance(sort, dict):
        for name, direction in sort.items():
            if isinstance(direction, str):
                descending = direction.strip().lower() == "desc"
            else:
                descending = direction is not None and int(direction) < 0
            keys.append((name, descending))
        return keys

    for clause in str(sort).split(","):
        parts = clause.split()
        if not parts:
            continue
        descending = len(parts) > 1 and parts[1].lower() == "desc"
        keys.append((parts[0], descending))
    return keys


def _sort_rows(rows: list[dict[str, Any]], keys: list[tuple[str, bool]]) -> list[dict[str, Any]]:
    # Stable sort applied from the least significant key
    for name, descending in reversed(keys):
        present = [r for r in rows if r.get(name) is not None]
        missing = [r for r in rows if r.get(name) is None]
        present.sort(key=lambda r: r[name], reverse=descending)
        rows = present + missing
    return rows


# =============================================================================
# Query
# =============================================================================


class InMemoryQuery(Query):
    """Query over an InMemoryModel."""

    def __init__(self, model: InMemoryModel, single: bool = False):
        self._model = model
        self._single = single
        self._criteria: list[dict[str, Any]] = []
        self._limit: int | None = None
        self._skip = 0
        self._sort: list[tuple[str, bool]] = []
        self._populate: list[str] = []

    def where(self, criteria: dict[str, Any]) -> InMemoryQuery:
        if criteria:
            self._criteria.append(dict(criteria))
        return self

    def limit(self, limit: int) -> InMemoryQuery:
        self._limit = limit
        return self

    def skip(self, skip: int) -> InMemoryQuery:
        self._skip = skip or 0
        return self

    def sort(self, sort: str | dict[str, Any]) -> InMemoryQuery:
        self._sort.extend(parse_sort(sort))
        return self

    def populate(self, association: str) -> InMemoryQuery:
        if association not in self._populate:
            self._populate.append(association)
        return self

    @property
    def populated(self) -> list[str]:
        return list(self._populate)

    async def exec(self) -> Any:
        rows = [r for r in self._model.rows() if all(matches(r, c) for c in self._criteria)]
        rows = _sort_rows(rows, self._sort)
        rows = rows[self._skip:]
        if self._limit is not None and self._limit >= 0:
            rows = rows[: self._limit]

        records = [Record(**self._model.populate_row(r, self._populate)) for r in rows]

        if self._single:
            return records[0] if records else None
        return records


# =============================================================================
# Model
# =============================================================================


class InMemoryModel(Model):
    """
    In-memory model for development.

    Args:
        identity: Lookup name (lower-cased)
        global_id: Display name for messages (defaults to the capitalized identity)
        schema: Optional pydantic model validating create/update payloads
        associations: attribute name -> associated model identity
        registry: Registry used to resolve associations when populating
    """

    def __init__(
        self,
        identity: str,
        global_id: str | None = None,
        schema: type[BaseModel] | None = None,
        associations: dict[str, str] | None = None,
        registry: ModelRegistry | None = None,
    ):
        self.identity = identity.lower()
        self.global_id = global_id or identity[:1].upper() + identity[1:]
        self.schema = schema
        self.associations = dict(associations or {})
        self.registry = registry
        self._data: dict[Any, dict[str, Any]] = {}
        self._next_id = 1

    # =========================================================================
    # Internals
    # =========================================================================

    def rows(self) -> list[dict[str, Any]]:
        return [copy.deepcopy(r) for r in self._data.values()]

    def resolve_pk(self, pk: Any) -> Any:
        """Map a raw (possibly string) primary key onto a stored key."""
        if pk in self._data:
            return pk
        if isinstance(pk, str) and pk.lstrip("-").isdigit() and int(pk) in self._data:
            return int(pk)
        if not isinstance(pk, str) and str(pk) in self._data:
            return str(pk)
        return pk

    def _validate(self, values: dict[str, Any]) -> dict[str, Any]:
        if self.schema is None:
            return values
        try:
            validated = self.schema.model_validate(values)
        except ValidationError as e:
            details = [
                {"attribute": ".".join(str(p) for p in err["loc"]), "message": err["msg"], "rule": err["type"]}
                for err in e.errors()
            ]
            raise RecordValidationError(self.global_id, details) from e
        return {**values, **validated.model_dump()}

    def populate_row(self, row: dict[str, Any], names: list[str]) -> dict[str, Any]:
        if not names or self.registry is None:
            return row
        for name in names:
            identity = self.associations.get(name)
            if identity is None or name not in row:
                continue
            target = self.registry.get(identity)
            value = row[name]
            if isinstance(value, list):
                row[name] = [r for r in (target.get_row(v) for v in value) if r is not None]
            else:
                row[name] = target.get_row(value)
        return row

    def get_row(self, pk: Any) -> dict[str, Any] | None:
        row = self._data.get(self.resolve_pk(pk))
        return copy.deepcopy(row) if row is not None else None

    # =========================================================================
    # Model API
    # =========================================================================

    def find(self) -> InMemoryQuery:
        return InMemoryQuery(self)

    def find_one(self, pk: Any) -> InMemoryQuery:
        return InMemoryQuery(self, single=True).where({"id": self.resolve_pk(pk)})

    async def create(self, values: dict[str, Any]) -> Record:
        data = self._validate({k: v for k, v in values.items() if k != "id"})
        pk = values.get("id")
        if pk is None:
            while self._next_id in self._data:
                self._next_id += 1
            pk = self._next_id
            self._next_id += 1
        elif pk in self._data:
            raise RecordValidationError(
                self.global_id,
                [{"attribute": "id", "message": f"A record with id {pk!r} already exists", "rule": "unique"}],
            )
        self._data[pk] = {**copy.deepcopy(data), "id": pk}
        return Record(**copy.deepcopy(self._data[pk]))

    async def update(self, pk: Any, values: dict[str, Any]) -> list[Record]:
        key = self.resolve_pk(pk)
        if key not in self._data:
            return []
        current = self._data[key]
        changes = {k: v for k, v in values.items() if k != "id"}
        merged = self._validate({**{k: v for k, v in current.items() if k != "id"}, **changes})
        self._data[key] = {**copy.deepcopy(merged), "id": key}
        return [Record(**copy.deepcopy(self._data[key]))]

    async def destroy(self, pk: Any) -> list[Record]:
        key = self.resolve_pk(pk)
        row = self._data.pop(key, None)
        return [Record(**row)] if row is not None else []
