"""
FastAPI host for controllers.
"""

from gatedcrud.api.app import create_app
from gatedcrud.api.dependencies import build_context, get_principal
from gatedcrud.api.router import build_router
from gatedcrud.api.sink import JSONResponseSink

__all__ = [
    "create_app",
    "build_router",
    "build_context",
    "get_principal",
    "JSONResponseSink",
]
