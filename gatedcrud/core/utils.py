"""
Shared utility functions.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any


def generate_id(prefix: str = "") -> str:
    """
    Generate a unique ID with optional prefix.

    Args:
        prefix: Optional prefix (e.g., "widget", "evt")

    Returns:
        A unique ID like "widget_a1b2c3d4e5f6"
    """
    uid = str(uuid.uuid4())[:12]
    return f"{prefix}_{uid}" if prefix else uid


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def id_for(value: Any) -> Any:
    """
    Reduce a record, mapping or raw identifier to its identifier.

    Records and objects contribute their ``id`` attribute, mappings their
    ``"id"`` key. Anything else is assumed to already be an identifier.
    """
    if value is None:
        return None
    if isinstance(value, Mapping):
        return value.get("id")
    return getattr(value, "id", value)
