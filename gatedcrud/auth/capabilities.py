"""
Permission naming.

This defines HOW a (resource type, action) pair is spelled inside a
principal's permission set. The actual checking happens in authorizer.py.

Permission strings:
    "widget.read"            read any widget
    "widget.*"               every action on widgets
    "widget:shop_1.update"   update widgets owned by producer shop_1
    "*"                      everything
"""

from __future__ import annotations

from typing import Any

from gatedcrud.core.models import Action, ResourceType
from gatedcrud.core.utils import id_for

WILDCARD = "*"


def action_name(action: Action | str) -> str:
    """Plain string name of an action."""
    return action.value if isinstance(action, Action) else str(action)


def permission_for(
    model_name: str | None,
    action: Action | str,
    producer: Any = None,
) -> str:
    """Spell the permission for one action on one resource type."""
    scope = model_name or WILDCARD
    if producer is not None:
        scope = f"{scope}:{producer}"
    return f"{scope}.{action_name(action)}"


def record_producer(record: Any) -> Any:
    """Producer identifier stored on a record, if any."""
    if record is None:
        return None
    if isinstance(record, dict):
        return id_for(record.get("producer"))
    return id_for(getattr(record, "producer", None))


def candidate_permissions(
    resource: ResourceType,
    action: Action | str,
    record: Any = None,
) -> set[str]:
    """
    All permission strings that would grant ``action`` on ``record``.

    Unscoped grants apply to a producer-scoped type only when the record
    (if any) belongs to the bound producer.
    """
    name = resource.model_name
    candidates = {WILDCARD}

    if resource.is_scoped:
        candidates.add(permission_for(name, action, resource.producer))
        candidates.add(permission_for(name, WILDCARD, resource.producer))
        if record is not None and record_producer(record) != resource.producer:
            return {WILDCARD}

    candidates.add(permission_for(name, action))
    candidates.add(permission_for(name, WILDCARD))
    return candidates


def has_permission(
    permissions: set[str],
    resource: ResourceType,
    action: Action | str,
    record: Any = None,
) -> bool:
    """Check if a permission set grants ``action`` on ``record``."""
    return not permissions.isdisjoint(candidate_permissions(resource, action, record))
