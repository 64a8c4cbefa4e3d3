"""
Response sinks.

Actions never build transport responses themselves; they report one of a
fixed set of outcomes to a sink. ``ActionResultSink`` turns outcomes into
plain ``ActionResult`` values; the FastAPI host uses ``JSONResponseSink``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from gatedcrud.config import Settings, get_settings

logger = logging.getLogger(__name__)


def error_body(error: BaseException | None, debug: bool | None = None) -> Any:
    """Body for an error response; details are hidden outside debug mode."""
    if debug is None:
        debug = get_settings().debug
    if error is None or not debug:
        return None
    body: dict[str, Any] = {"error": str(error), "type": type(error).__name__}
    details = getattr(error, "details", None)
    if details:
        body["details"] = details
    return body


class ResponseSink(ABC):
    """
    Distinguishable action outcomes.

    ``settings`` decides whether server errors expose their message; an
    unbound sink follows ``get_settings()``.
    """

    settings: Settings | None = None

    def bind(self, settings: Settings | None) -> ResponseSink:
        """Use ``settings`` for error bodies unless the sink is already bound."""
        if self.settings is None:
            self.settings = settings
        return self

    @abstractmethod
    def send(self, status: int, body: Any = None) -> Any:
        pass

    def ok(self, body: Any = None) -> Any:
        return self.send(200, body)

    def created(self, body: Any = None) -> Any:
        return self.send(201, body)

    def bad_request(self, body: Any = None) -> Any:
        return self.send(400, body)

    def forbidden(self, body: Any = None) -> Any:
        return self.send(403, body)

    def not_found(self, body: Any = None) -> Any:
        return self.send(404, body)

    def server_error(self, error: BaseException | None = None) -> Any:
        if error is not None:
            logger.error(f"Sending 500 (\"Server Error\") response: {error}", exc_info=error)
        debug = self.settings.debug if self.settings is not None else None
        return self.send(500, error_body(error, debug))

    def negotiate(self, error: BaseException) -> Any:
        """
        Respond according to the error's own ``status``.

        Client errors (validation failures) carry their details; anything
        without a status is a server error.
        """
        status = getattr(error, "status", None)
        if not isinstance(status, int) or status >= 500:
            return self.server_error(error)

        body: dict[str, Any] = {"error": str(error)}
        details = getattr(error, "details", None)
        if details:
            body["details"] = details
        return self.send(status, body)


@dataclass
class ActionResult:
    """A transport-neutral response."""

    status: int
    body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class ActionResultSink(ResponseSink):
    """Sink returning ``ActionResult`` values."""

    def send(self, status: int, body: Any = None) -> ActionResult:
        return ActionResult(status=status, body=body)
