"""
FastAPI application factory.

Mounts one router per controller. Controllers are expected to come from a
configured and initialized GatedCrudHook.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gatedcrud.api.router import build_router
from gatedcrud.controller.base import BaseController
from gatedcrud.hook import GatedCrudHook

logger = logging.getLogger(__name__)


def create_app(
    hook: GatedCrudHook,
    controllers: Iterable[BaseController],
    title: str = "gatedcrud",
) -> FastAPI:
    """Create the HTTP host for a set of controllers."""
    app = FastAPI(title=title, version="0.1.0")
    app.state.hook = hook

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=hook.settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health_check():
        return {
            "status": "ok",
            "environment": hook.settings.environment,
            "models": hook.models.list_models(),
        }

    for controller in controllers:
        app.include_router(build_router(controller))
        logger.info(f"Mounted {type(controller).__name__} at /{controller.model_name}")

    return app
