"""
Core module - value types and infrastructure.

This module contains:
- models: ResourceType, AuthorizationDecision, QueryConfiguration
- events: Pub/sub notification collaborator
- registry: Model registry
- utils: Shared utility functions
"""

from gatedcrud.core.events import Event, InMemoryPubSub, PubSub
from gatedcrud.core.models import (
    Action,
    AuthorizationDecision,
    DecisionOutcome,
    QueryConfiguration,
    ResourceType,
    Scenario,
    decide,
)
from gatedcrud.core.registry import ModelRegistry, get_registry, reset_registry

__all__ = [
    "Action",
    "AuthorizationDecision",
    "DecisionOutcome",
    "Event",
    "InMemoryPubSub",
    "ModelRegistry",
    "PubSub",
    "QueryConfiguration",
    "ResourceType",
    "Scenario",
    "decide",
    "get_registry",
    "reset_registry",
]
