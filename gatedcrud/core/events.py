"""
Pub/sub notification collaborator.

Actions notify live subscribers about created, updated and destroyed
records and subscribe socket callers to the records they read. Pub/sub
is optional: a controller without one skips every notification step.
"""

from __future__ import annotations

import fnmatch
import logging
import uuid
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable

from gatedcrud.core.utils import id_for, utc_now

if TYPE_CHECKING:
    from gatedcrud.auth.context import RequestContext
    from gatedcrud.storage.base import Model

logger = logging.getLogger(__name__)

# Type for event listeners
EventListener = Callable[["Event"], Awaitable[None]]


@dataclass
class Event:
    """A notification about one record."""

    verb: str  # "created", "updated", "destroyed"
    model: str
    record_id: Any
    data: dict[str, Any] = field(default_factory=dict)
    previous: dict[str, Any] | None = None

    # Tracing
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=utc_now)

    @property
    def event_type(self) -> str:
        return f"{self.model}.{self.verb}"

    def to_dict(self) -> dict[str, Any]:
        """Serialize event to dictionary."""
        return {
            "id": self.id,
            "verb": self.verb,
            "model": self.model,
            "record_id": self.record_id,
            "data": self.data,
            "previous": self.previous,
            "timestamp": self.timestamp.isoformat(),
        }


def _json(record: Any) -> dict[str, Any]:
    if record is None:
        return {}
    if hasattr(record, "to_json"):
        return record.to_json()
    return dict(record)


class PubSub(ABC):
    """
    Live-update capability.

    ``origin`` is the requesting context, or None when notifications should
    be mirrored back to the caller as well.
    """

    @abstractmethod
    async def publish_create(self, model: Model, record: Any, origin: RequestContext | None = None) -> None:
        pass

    @abstractmethod
    async def publish_update(
        self,
        model: Model,
        pk: Any,
        changes: dict[str, Any],
        origin: RequestContext | None = None,
        previous: Any = None,
    ) -> None:
        pass

    @abstractmethod
    async def publish_destroy(
        self,
        model: Model,
        pk: Any,
        origin: RequestContext | None = None,
        previous: Any = None,
    ) -> None:
        pass

    @abstractmethod
    def subscribe(self, ctx: RequestContext, model: Model, records: Any) -> None:
        """Subscribe the caller's socket to one record or a list of records."""
        pass

    @abstractmethod
    def unsubscribe(self, ctx: RequestContext, model: Model, records: Any) -> None:
        pass

    @abstractmethod
    def watch(self, ctx: RequestContext, model: Model) -> None:
        """Subscribe the caller's socket to records created later."""
        pass

    @abstractmethod
    def introduce(self, model: Model, record: Any) -> None:
        """Subscribe every watcher of ``model`` to a newly created record."""
        pass

    @abstractmethod
    def retire(self, model: Model, record: Any) -> None:
        """Drop every subscription to a destroyed record."""
        pass


def _as_list(records: Any) -> list[Any]:
    if records is None:
        return []
    if isinstance(records, (list, tuple)):
        return list(records)
    return [records]


class InMemoryPubSub(PubSub):
    """
    In-memory pub/sub implementation.

    Sockets are identified by ``RequestContext.socket_id``. Delivered
    events are kept per socket in an inbox; listeners registered with
    ``listen`` are awaited for every published event.
    """

    def __init__(self, max_history: int = 10000):
        self._rooms: dict[tuple[str, Any], set[str]] = defaultdict(set)
        self._watchers: dict[str, set[str]] = defaultdict(set)
        self._inbox: dict[str, list[Event]] = defaultdict(list)
        self._listeners: list[tuple[str, EventListener]] = []
        self._event_history: list[Event] = []
        self._max_history = max_history

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def subscribe(self, ctx: RequestContext, model: Model, records: Any) -> None:
        if not ctx.socket_id:
            return
        for record in _as_list(records):
            self._rooms[(model.identity, id_for(record))].add(ctx.socket_id)

    def unsubscribe(self, ctx: RequestContext, model: Model, records: Any) -> None:
        if not ctx.socket_id:
            return
        for record in _as_list(records):
            self._rooms.get((model.identity, id_for(record)), set()).discard(ctx.socket_id)

    def watch(self, ctx: RequestContext, model: Model) -> None:
        if ctx.socket_id:
            self._watchers[model.identity].add(ctx.socket_id)

    def introduce(self, model: Model, record: Any) -> None:
        self._rooms[(model.identity, id_for(record))].update(self._watchers.get(model.identity, set()))

    def retire(self, model: Model, record: Any) -> None:
        self._rooms.pop((model.identity, id_for(record)), None)

    def subscribers(self, model: Model, record: Any) -> set[str]:
        """Sockets subscribed to one record."""
        return set(self._rooms.get((model.identity, id_for(record)), set()))

    def watchers(self, model: Model) -> set[str]:
        return set(self._watchers.get(model.identity, set()))

    # =========================================================================
    # Publishing
    # =========================================================================

    def listen(self, pattern: str, listener: EventListener) -> None:
        """Register a listener for event types like "widget.*"."""
        self._listeners.append((pattern, listener))

    async def publish_create(self, model: Model, record: Any, origin: RequestContext | None = None) -> None:
        event = Event(verb="created", model=model.identity, record_id=id_for(record), data=_json(record))
        await self._broadcast(self.watchers(model), event, origin)

    async def publish_update(
        self,
        model: Model,
        pk: Any,
        changes: dict[str, Any],
        origin: RequestContext | None = None,
        previous: Any = None,
    ) -> None:
        event = Event(
            verb="updated",
            model=model.identity,
            record_id=pk,
            data=dict(changes),
            previous=_json(previous) if previous is not None else None,
        )
        await self._broadcast(self.subscribers(model, pk), event, origin)

    async def publish_destroy(
        self,
        model: Model,
        pk: Any,
        origin: RequestContext | None = None,
        previous: Any = None,
    ) -> None:
        event = Event(
            verb="destroyed",
            model=model.identity,
            record_id=pk,
            previous=_json(previous) if previous is not None else None,
        )
        await self._broadcast(self.subscribers(model, pk), event, origin)

    async def _broadcast(self, sockets: Iterable[str], event: Event, origin: RequestContext | None) -> None:
        self._event_history.append(event)
        if len(self._event_history) > self._max_history:
            self._event_history = self._event_history[-self._max_history:]

        skip = origin.socket_id if origin is not None else None
        for socket_id in sockets:
            if socket_id != skip:
                self._inbox[socket_id].append(event)

        for pattern, listener in self._listeners:
            if not fnmatch.fnmatch(event.event_type, pattern):
                continue
            try:
                await listener(event)
            except Exception:
                # Log error but don't stop other listeners
                logger.exception(f"Error in pub/sub listener for {event.event_type}")

    # =========================================================================
    # Inspection
    # =========================================================================

    def inbox(self, socket_id: str) -> list[Event]:
        """Events delivered to one socket."""
        return list(self._inbox.get(socket_id, []))

    def get_history(self, event_type: str | None = None, limit: int = 100) -> list[Event]:
        """Query event history with optional filters."""
        results = self._event_history
        if event_type:
            results = [e for e in results if fnmatch.fnmatch(e.event_type, event_type)]
        return results[-limit:]
