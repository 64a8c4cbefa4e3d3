"""
gatedcrud - authorization-gated CRUD actions.

A controller exposes create / find / find_one / update / destroy over a
record store, asks a pluggable Authorizer before touching any record, and
runs before/after lifecycle hooks around each store operation.
"""

from gatedcrud.auth import (
    Authorizer,
    DefaultAuthorizer,
    PermissionSetAuthorizer,
    Principal,
    RequestContext,
)
from gatedcrud.controller import BaseController, Controller
from gatedcrud.core import (
    AuthorizationDecision,
    InMemoryPubSub,
    ModelRegistry,
    PubSub,
    QueryConfiguration,
    ResourceType,
)
from gatedcrud.hook import GatedCrudHook
from gatedcrud.responses import ActionResult, ActionResultSink, ResponseSink
from gatedcrud.storage import InMemoryModel, Model, Record

__version__ = "0.1.0"

__all__ = [
    "ActionResult",
    "ActionResultSink",
    "AuthorizationDecision",
    "Authorizer",
    "BaseController",
    "Controller",
    "DefaultAuthorizer",
    "GatedCrudHook",
    "InMemoryModel",
    "InMemoryPubSub",
    "Model",
    "ModelRegistry",
    "PermissionSetAuthorizer",
    "Principal",
    "PubSub",
    "QueryConfiguration",
    "Record",
    "RequestContext",
    "ResourceType",
    "ResponseSink",
]
