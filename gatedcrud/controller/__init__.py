"""
Controllers and their CRUD actions.
"""

from gatedcrud.controller.base import ACTIONS, BaseController, Controller

__all__ = ["ACTIONS", "BaseController", "Controller"]
