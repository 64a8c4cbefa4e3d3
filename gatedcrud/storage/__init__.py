"""
Store capability and the in-memory implementation.
"""

from gatedcrud.storage.base import (
    Model,
    Query,
    Record,
    RecordValidationError,
    StoreError,
    UnknownModelError,
)
from gatedcrud.storage.memory import InMemoryModel, InMemoryQuery

__all__ = [
    "Model",
    "Query",
    "Record",
    "RecordValidationError",
    "StoreError",
    "UnknownModelError",
    "InMemoryModel",
    "InMemoryQuery",
]
